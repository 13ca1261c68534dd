"""Route a classifier label onto a catalogue category and a department."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional

from extensions import db
from models import Category
from utils.errors import ConfigurationError

FALLBACK_DEPARTMENT = "General Administration Department"


@dataclass(frozen=True)
class Assignment:
    category_name: str
    department: str


LABEL_ASSIGNMENTS: Dict[str, Assignment] = {
    "Roads & Infrastructure": Assignment("Roads & Potholes", "Public Works Department"),
    "Water & Drainage": Assignment("Drainage", "Water & Drainage Department"),
    "Electricity & Street Lighting": Assignment("Street Lights", "Electricity Department"),
    "Sanitation & Waste": Assignment("Waste Management", "Sanitation Department"),
    "Public Health": Assignment("Public Safety", "Public Health Department"),
    "Fire & Emergency": Assignment("Public Safety", "Emergency Services Department"),
    "Property & Tax": Assignment("Public Safety", "Revenue Department"),
    "Environment & Gardens": Assignment("Waste Management", "Environment Department"),
    "Encroachment & Illegal Activity": Assignment("Public Safety", "Enforcement Department"),
}

# Checked in order when a label is not an exact key above.
FUZZY_LABEL_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Roads & Infrastructure", ("road", "pothole", "infrastructure")),
    ("Water & Drainage", ("water", "drain", "sewer", "flood")),
    ("Electricity & Street Lighting", ("electric", "street light", "lighting")),
    ("Sanitation & Waste", ("waste", "garbage", "sanitation", "clean")),
    ("Public Health", ("health", "hospital", "medical")),
    ("Fire & Emergency", ("fire", "emergency", "accident")),
    ("Property & Tax", ("tax", "property", "assessment")),
    ("Environment & Gardens", ("environment", "garden", "tree", "park")),
    ("Encroachment & Illegal Activity", ("encroach", "illegal", "unauthor")),
)

DEFAULT_DEPARTMENTS: Dict[str, str] = {
    "Roads & Potholes": "Public Works Department",
    "Waste Management": "Sanitation Department",
    "Street Lights": "Electricity Department",
    "Water Supply": "Water Supply Department",
    "Drainage": "Water & Drainage Department",
    "Public Safety": "Public Safety Department",
}


def map_label(label: str | None) -> Optional[Assignment]:
    if not label:
        return None
    if label in LABEL_ASSIGNMENTS:
        return LABEL_ASSIGNMENTS[label]
    normalized = re.sub(r"\s+", " ", label.strip().lower())
    for target, keywords in FUZZY_LABEL_KEYWORDS:
        if any(keyword in normalized for keyword in keywords):
            return LABEL_ASSIGNMENTS[target]
    return None


def department_for(category: Category, assignment: Optional[Assignment] = None) -> str:
    if assignment:
        return assignment.department
    return category.department or DEFAULT_DEPARTMENTS.get(category.name) or FALLBACK_DEPARTMENT


def route_category(label: str | None, chosen_category_id: int | None = None) -> tuple[Category, str]:
    """Pick the catalogue category and department for a classified complaint.

    Order: the mapped catalogue category, the citizen's own pick, then the
    first category in the catalogue.
    """
    assignment = map_label(label)
    category = None
    if assignment:
        category = Category.query.filter_by(name=assignment.category_name).first()
    if category is None and chosen_category_id:
        category = db.session.get(Category, chosen_category_id)
    if category is None:
        category = Category.query.order_by(Category.id).first()
    if category is None:
        raise ConfigurationError("No grievance categories configured")
    return category, department_for(category, assignment)
