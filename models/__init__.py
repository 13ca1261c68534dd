"""Core data models for accounts, the category catalogue, grievances, and sessions."""
import json
from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db


USER_ROLES: tuple[str, ...] = (
	"citizen",
	"authority",
	"contractor",
)

WORKFLOW_STATUSES: tuple[str, ...] = (
	"submitted",
	"assigned",
	"in_progress",
	"resolved",
	"rejected",
	"reopened",
)

COMPLAINT_STATUSES: tuple[str, ...] = (
	"pending",
	"accepted",
	"in_progress",
	"closed",
)

PRIORITY_LEVELS: tuple[str, ...] = (
	"low",
	"medium",
	"high",
)

OPEN_COMPLAINT_STATUSES: tuple[str, ...] = ("accepted", "in_progress")


def _in_clause(column: str, values: tuple[str, ...]) -> str:
	quoted = ", ".join(f"'{value}'" for value in values)
	return f"{column} IN ({quoted})"


class User(UserMixin, db.Model):
	__tablename__ = "users"

	id = db.Column(db.Integer, primary_key=True)
	email = db.Column(db.String(255), unique=True, nullable=False)
	password = db.Column(db.String(255), nullable=False)
	name = db.Column(db.String(150), nullable=False)
	phone = db.Column(db.String(30), nullable=True)
	role = db.Column(db.String(20), nullable=False, server_default="citizen")
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=True)

	__table_args__ = (
		db.CheckConstraint(_in_clause("role", USER_ROLES), name="ck_users_role_valid"),
	)

	grievances = db.relationship(
		"Grievance",
		back_populates="citizen",
		foreign_keys="Grievance.citizen_id",
		lazy="dynamic",
	)
	assignments = db.relationship(
		"Grievance",
		back_populates="contractor",
		foreign_keys="Grievance.contractor_id",
		lazy="dynamic",
	)

	@staticmethod
	def get_or_create(email: str, name: str, role: str, password: str):
		normalized = (email or "").strip().lower()
		user = User.query.filter_by(email=normalized).first()
		if user:
			return user, False
		user = User(email=normalized, name=name, role=role)
		user.set_password(password)
		db.session.add(user)
		db.session.commit()
		return user, True

	def set_password(self, password: str) -> None:
		self.password = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str) -> bool:
		try:
			return check_password_hash(self.password, password)
		except ValueError:
			# Hash produced by a scheme werkzeug does not understand.
			return False

	@property
	def is_citizen(self) -> bool:
		return self.role == "citizen"

	@property
	def is_authority(self) -> bool:
		return self.role == "authority"

	@property
	def is_contractor(self) -> bool:
		return self.role == "contractor"

	def session_payload(self) -> dict:
		return {"id": self.id, "name": self.name, "email": self.email, "role": self.role}


class Category(db.Model):
	__tablename__ = "grievance_categories"

	id = db.Column(db.Integer, primary_key=True)
	name = db.Column(db.String(120), unique=True, nullable=False)
	description = db.Column(db.String(255), nullable=True)
	department = db.Column(db.String(255), nullable=True)

	grievances = db.relationship("Grievance", back_populates="category", lazy="dynamic")

	@staticmethod
	def get_or_create(name: str, description: str = "", department: str | None = None):
		category = Category.query.filter_by(name=name).first()
		if category:
			return category, False
		category = Category(name=name, description=description, department=department)
		db.session.add(category)
		db.session.commit()
		return category, True

	def payload(self) -> dict:
		return {"id": self.id, "name": self.name, "description": self.description, "department": self.department}


class Grievance(db.Model):
	__tablename__ = "grievances"

	id = db.Column(db.Integer, primary_key=True)
	ticket_number = db.Column(db.String(40), unique=True, nullable=False)
	citizen_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
	category_id = db.Column(db.Integer, db.ForeignKey("grievance_categories.id"), nullable=False)
	contractor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
	title = db.Column(db.String(255), nullable=False)
	description = db.Column(db.Text, nullable=False)
	reporter_name = db.Column(db.String(150), nullable=True)
	reporter_email = db.Column(db.String(255), nullable=True)
	reporter_mobile = db.Column(db.String(20), nullable=True)
	assigned_department = db.Column(db.String(255), nullable=True)
	location = db.Column(db.String(500), nullable=False)
	latitude = db.Column(db.Float, nullable=True)
	longitude = db.Column(db.Float, nullable=True)
	images_json = db.Column(db.Text, nullable=True)
	resolution_image_url = db.Column(db.String(500), nullable=True)
	resolution_notes = db.Column(db.Text, nullable=True)
	priority = db.Column(db.String(10), nullable=True, default="medium", server_default="medium")
	status = db.Column(db.String(20), nullable=True, default="submitted", server_default="submitted", index=True)
	complaint_status = db.Column(db.String(20), nullable=True, default="pending", server_default="pending")
	citizen_rating = db.Column(db.Integer, nullable=True)
	citizen_feedback = db.Column(db.Text, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=True, index=True)
	updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=True)
	resolved_at = db.Column(db.DateTime, nullable=True)

	__table_args__ = (
		db.CheckConstraint(_in_clause("status", WORKFLOW_STATUSES), name="ck_grievance_status_valid"),
		db.CheckConstraint(_in_clause("priority", PRIORITY_LEVELS), name="ck_grievance_priority_valid"),
		db.CheckConstraint(
			_in_clause("complaint_status", COMPLAINT_STATUSES),
			name="ck_grievance_complaint_status_valid",
		),
		db.CheckConstraint(
			"citizen_rating IS NULL OR citizen_rating BETWEEN 1 AND 5",
			name="ck_grievance_rating_range",
		),
	)

	citizen = db.relationship("User", back_populates="grievances", foreign_keys=[citizen_id])
	contractor = db.relationship("User", back_populates="assignments", foreign_keys=[contractor_id])
	category = db.relationship("Category", back_populates="grievances")
	comments = db.relationship(
		"Comment",
		back_populates="grievance",
		order_by="Comment.id",
	)

	@property
	def image_urls(self) -> list[str]:
		if not self.images_json:
			return []
		try:
			parsed = json.loads(self.images_json)
		except (TypeError, ValueError):
			return []
		if not isinstance(parsed, list):
			return []
		return [item for item in parsed if isinstance(item, str)]

	@image_urls.setter
	def image_urls(self, urls: list[str]) -> None:
		self.images_json = json.dumps(list(urls)) if urls else None

	@property
	def before_image_url(self) -> str | None:
		urls = self.image_urls
		return urls[0] if urls else None

	def api_payload(self, include_citizen: bool = False) -> dict:
		payload = {
			"id": self.id,
			"ticket_number": self.ticket_number,
			"citizen_id": self.citizen_id,
			"category_id": self.category_id,
			"category_name": self.category.name if self.category else None,
			"contractor_id": self.contractor_id,
			"contractor_name": self.contractor.name if self.contractor else None,
			"title": self.title,
			"description": self.description,
			"reporter_name": self.reporter_name,
			"reporter_email": self.reporter_email,
			"reporter_mobile": self.reporter_mobile,
			"assigned_department": self.assigned_department,
			"location": self.location,
			"latitude": self.latitude,
			"longitude": self.longitude,
			"images": self.image_urls,
			"resolution_image_url": self.resolution_image_url,
			"resolution_notes": self.resolution_notes,
			"priority": self.priority,
			"status": self.status,
			"complaint_status": self.complaint_status,
			"citizen_rating": self.citizen_rating,
			"citizen_feedback": self.citizen_feedback,
			"created_at": _iso(self.created_at),
			"updated_at": _iso(self.updated_at),
			"resolved_at": _iso(self.resolved_at),
		}
		if include_citizen and self.citizen:
			payload["citizen_name"] = self.citizen.name
			payload["citizen_email"] = self.citizen.email
			payload["citizen_phone"] = self.citizen.phone
		return payload


class Comment(db.Model):
	__tablename__ = "grievance_comments"

	id = db.Column(db.Integer, primary_key=True)
	grievance_id = db.Column(db.Integer, db.ForeignKey("grievances.id"), nullable=False, index=True)
	user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
	comment = db.Column(db.Text, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=True)

	grievance = db.relationship("Grievance", back_populates="comments")
	author = db.relationship("User")

	def payload(self) -> dict:
		return {
			"id": self.id,
			"grievance_id": self.grievance_id,
			"user_id": self.user_id,
			"user_name": self.author.name if self.author else None,
			"comment": self.comment,
			"created_at": _iso(self.created_at),
		}


class UserSession(db.Model):
	__tablename__ = "user_sessions"

	token = db.Column(db.String(128), primary_key=True)
	user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=True)

	user = db.relationship("User")


def _iso(value: datetime | None) -> str | None:
	return value.isoformat() if value else None
