"""Reference data and fixed accounts created on startup if absent."""
import logging
from typing import Dict, List

from models import Category, User
from utils.category_routing import DEFAULT_DEPARTMENTS

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("Roads & Potholes", "Road damage, potholes, pavement issues"),
    ("Waste Management", "Garbage collection, dumping, sanitation"),
    ("Street Lights", "Non-functional street lights, dark areas"),
    ("Water Supply", "Water leakage, supply issues"),
    ("Drainage", "Blocked drains, flooding"),
    ("Public Safety", "Hazards, encroachment and emergencies"),
)

DEMO_CITIZEN = ("citizen@nagarseva.com", "Harsh", "citizen123")
DEMO_CONTRACTORS: tuple[tuple[str, str, str], ...] = (
    ("contractor1@nagarseva.gov", "Contractor One", "contractor123"),
    ("contractor2@nagarseva.gov", "Contractor Two", "contractor234"),
    ("contractor3@nagarseva.gov", "Contractor Three", "contractor345"),
)


def seed_categories() -> List[str]:
    created = []
    for name, description in DEFAULT_CATEGORIES:
        _, was_created = Category.get_or_create(name, description=description, department=DEFAULT_DEPARTMENTS.get(name))
        if was_created:
            created.append(name)
    return created


def seed_accounts(config) -> List[str]:
    """Create the default authority and, when enabled, the demo accounts.

    Existing rows are left exactly as they are, even when their name or
    password differ from the defaults.
    """
    accounts = []
    admin_email = (config.get("DEFAULT_ADMIN_EMAIL") or "").strip().lower()
    admin_password = config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if admin_email and admin_password:
        accounts.append((admin_email, config.get("DEFAULT_ADMIN_NAME") or "Municipal Officer", "authority", admin_password))

    if config.get("SEED_DEMO_ACCOUNTS"):
        email, name, password = DEMO_CITIZEN
        accounts.append((email, name, "citizen", password))
        accounts.extend((email, name, "contractor", password) for email, name, password in DEMO_CONTRACTORS)

    created = []
    for email, name, role, password in accounts:
        _, was_created = User.get_or_create(email, name=name, role=role, password=password)
        if was_created:
            created.append(email)
    return created


def seed_reference_data(config) -> Dict[str, List[str]]:
    summary = {"categories": seed_categories(), "accounts": seed_accounts(config)}
    if summary["categories"] or summary["accounts"]:
        logger.info("Seed data created", extra=summary)
    return summary
