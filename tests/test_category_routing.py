import pytest

from extensions import db
from models import Category, Grievance
from utils.category_routing import FALLBACK_DEPARTMENT, department_for, map_label, route_category
from utils.errors import ConfigurationError


@pytest.mark.parametrize(
    "label, category_name, department",
    [
        ("Roads & Infrastructure", "Roads & Potholes", "Public Works Department"),
        ("Water & Drainage", "Drainage", "Water & Drainage Department"),
        ("  road  MAINTENANCE ", "Roads & Potholes", "Public Works Department"),
        ("Sewer overflow", "Drainage", "Water & Drainage Department"),
        ("Tree cutting", "Waste Management", "Environment Department"),
    ],
)
def test_map_label(label, category_name, department):
    assignment = map_label(label)

    assert (assignment.category_name, assignment.department) == (category_name, department)


@pytest.mark.parametrize("label", [None, "", "Other", "Stray animals"])
def test_unmapped_labels(label):
    assert map_label(label) is None


def test_route_mapped_label(ctx):
    category, department = route_category("Electricity & Street Lighting")

    assert category.name == "Street Lights"
    assert department == "Electricity Department"


def test_route_falls_back_to_citizen_choice(ctx):
    water = Category.query.filter_by(name="Water Supply").one()

    category, department = route_category("Other", chosen_category_id=water.id)

    assert category.id == water.id
    assert department == "Water Supply Department"


def test_route_falls_back_to_first_category(ctx):
    category, _ = route_category("Other", chosen_category_id=9999)

    assert category.id == Category.query.order_by(Category.id).first().id


def test_mapped_department_survives_missing_catalogue_row(ctx):
    Category.query.filter_by(name="Public Safety").delete()
    db.session.commit()

    category, department = route_category("Fire & Emergency")

    assert category.id == Category.query.order_by(Category.id).first().id
    assert department == "Emergency Services Department"


def test_department_for_unknown_category():
    assert department_for(Category(name="Parks")) == FALLBACK_DEPARTMENT
    assert department_for(Category(name="Parks", department="Horticulture")) == "Horticulture"


def test_empty_catalogue_is_a_configuration_error(ctx):
    Grievance.query.delete()
    Category.query.delete()
    db.session.commit()

    with pytest.raises(ConfigurationError):
        route_category("Roads & Infrastructure")
