import io
import os

import pytest
from PIL import Image

from app import create_app
from extensions import db
from models import Category, Grievance, User


@pytest.fixture
def app(tmp_path):
    app = create_app(
        "testing",
        overrides={
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'grievance.db'}",
            "UPLOAD_FOLDER": str(tmp_path / "uploads"),
            "LOG_DIR": str(tmp_path / "logs"),
            "DEFAULT_ADMIN_EMAIL": "admin@nagarseva.gov",
            "DEFAULT_ADMIN_PASSWORD": "admin123",
            "SEED_DEMO_ACCOUNTS": True,
            "SESSION_STORE": "memory",
        },
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


def png_bytes(color=(120, 120, 120), size=(8, 8)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def noise_png_bytes(size=(96, 96)) -> bytes:
    # Random pixels defeat PNG compression, so the file is much larger than a flat image.
    buffer = io.BytesIO()
    Image.frombytes("RGB", size, os.urandom(size[0] * size[1] * 3)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def login(client):
    def _login(email, password, role="citizen"):
        response = client.post("/api/auth/login", json={"email": email, "password": password, "role": role})
        assert response.status_code == 200, response.get_json()
        return response.get_json()["token"]

    return _login


@pytest.fixture
def auth_header():
    def _header(token):
        return {"Authorization": f"Bearer {token}"}

    return _header


@pytest.fixture
def citizen_token(login):
    return login("citizen@nagarseva.com", "citizen123", "citizen")


@pytest.fixture
def authority_token(login):
    return login("admin@nagarseva.gov", "admin123", "authority")


@pytest.fixture
def contractor_tokens(login):
    return {
        "contractor1@nagarseva.gov": login("contractor1@nagarseva.gov", "contractor123", "contractor"),
        "contractor2@nagarseva.gov": login("contractor2@nagarseva.gov", "contractor234", "contractor"),
        "contractor3@nagarseva.gov": login("contractor3@nagarseva.gov", "contractor345", "contractor"),
    }


@pytest.fixture
def file_complaint(client, auth_header):
    def _file(token, description="Large pothole causing accidents on Main Street", location="Main Street", photos=(), **fields):
        data = {
            "fullName": "Harsh Kumar",
            "email": "harsh@example.com",
            "mobile": "9876543210",
            "description": description,
            "location": location,
        }
        data.update(fields)
        if photos:
            data["photos"] = [(io.BytesIO(content), name) for name, content in photos]
        return client.post(
            "/api/complaints",
            data=data,
            headers=auth_header(token),
            content_type="multipart/form-data",
        )

    return _file


@pytest.fixture
def make_grievance(ctx):
    """Insert a grievance row directly, bypassing intake."""

    def _make(citizen=None, **overrides):
        citizen = citizen or User.query.filter_by(email="citizen@nagarseva.com").one()
        category = Category.query.order_by(Category.id).first()
        values = {
            "ticket_number": f"CMP-TEST-{Grievance.query.count() + 1:04d}",
            "citizen_id": citizen.id,
            "category_id": category.id,
            "title": "Complaint by Harsh",
            "description": "Streetlight on the corner has been dark for a week",
            "location": "Corner of 5th Avenue",
            "priority": "medium",
            "status": "submitted",
            "complaint_status": "pending",
        }
        values.update(overrides)
        grievance = Grievance(**values)
        db.session.add(grievance)
        db.session.commit()
        return grievance

    return _make


@pytest.fixture
def contractors(ctx):
    return User.query.filter_by(role="contractor").order_by(User.id).all()


@pytest.fixture
def authority(ctx):
    return User.query.filter_by(role="authority").one()
