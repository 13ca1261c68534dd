"""Service helpers: lifecycle engine, classification, migrations, access control."""
