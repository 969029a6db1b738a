"""Shared fixtures.

Every test runs against a fresh SQLite database and storage root under
``tmp_path``; nothing touches ./db or ./data.

The seeded term runs Monday 2030-01-07 to Sunday 2030-03-31: twelve
Monday classes, so a session fee of 100.00 pro-rates to 8.33 per date.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient

from sharecrm.config.app_config import (
    AppConfig,
    AuthConfig,
    DatabaseConfig,
    EmailConfig,
    PaymentsConfig,
    StorageConfig,
    clear_config_cache,
    set_app_config,
)
from sharecrm.core import auth, catalog, customers
from sharecrm.core.permissions import create_staff, ensure_super_admin_role, seed_permissions
from sharecrm.db.database import init_db

WEBHOOK_SECRET = "whsec_test"
TERM_START = date(2030, 1, 7)
TERM_END = date(2030, 3, 31)
NO_PAQ = {q: False for q in customers.PAQ_QUESTIONS}


@pytest.fixture(autouse=True)
def crm_config(tmp_path, monkeypatch):
    """Isolated config, database and storage for each test."""
    monkeypatch.setattr("sharecrm.db.database._db_path", None)
    config = AppConfig(
        database=DatabaseConfig(path=str(tmp_path / "db" / "test.db")),
        storage=StorageConfig(root_dir=str(tmp_path / "storage"), max_upload_bytes=1024 * 1024),
        auth=AuthConfig(secret_key="test-secret", secret_key_env=None),
        payments=PaymentsConfig(webhook_secret=WEBHOOK_SECRET, webhook_secret_env=None),
        email=EmailConfig(enabled=False, password_env=None),
    )
    set_app_config(config)
    init_db(tmp_path / "db" / "test.db")
    seed_permissions()
    yield config
    clear_config_cache()


@pytest.fixture
def venue():
    return catalog.create_venue({"name": "Town Hall", "street_address": "1 Main St", "city": "Adelaide"})


@pytest.fixture
def term():
    return catalog.create_term(
        {
            "fiscal_year": 2030,
            "term_number": 1,
            "day_of_week": "Monday",
            "start_date": TERM_START.isoformat(),
            "end_date": TERM_END.isoformat(),
            "number_of_weeks": 12,
        }
    )


@pytest.fixture
def exercise_type():
    return catalog.create_exercise_type({"name": "Strength", "description": "Weights and bands"})


@pytest.fixture
def instructor():
    record, _ = catalog.create_instructor(
        {
            "name": "Sam Coach",
            "email": "sam@example.com",
            "contact_no": "0400 000 000",
            "specialty": "Strength",
            "address": "2 High St",
        },
        password="coach-pass",
    )
    return record


@pytest.fixture
def make_session(venue, term, instructor, exercise_type):
    """Factory for Monday sessions in the seeded term."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        values = {
            "name": f"Strength {counter['n']}",
            "code": f"STR{counter['n']:02d}",
            "venue_id": venue.id,
            "instructor_id": instructor.id,
            "exercise_type_id": exercise_type.id,
            "term_id": term.id,
            "fee_criteria": "per term",
            "fee_amount": 100,
            "day_of_week": "Monday",
            "start_time": "09:00",
            "end_time": "10:00",
        }
        values.update(overrides)
        return catalog.create_session(values)

    return _make


@pytest.fixture
def session(make_session):
    return make_session()


@pytest.fixture
def customer():
    return customers.create_customer(
        {"first_name": "Jane", "surname": "Doe", "email": "jane@example.com", "contact_no": "0411 111 111"}
    )


@pytest.fixture
def approved_customer(customer):
    customers.submit_paq(customer.id, NO_PAQ)
    return customers.review_paq(customer.id, "accepted")


@pytest.fixture
def client():
    from sharecrm.web.api import create_app

    return TestClient(create_app())


@pytest.fixture
def admin_headers():
    """Bearer headers for a staff member holding every permission."""
    role = ensure_super_admin_role()
    create_staff("Alex Admin", "admin@example.com", role.id, password="admin-pass")
    token = auth.sign_in("admin@example.com", "admin-pass").access_token
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers():
    """Bearer headers for a signed-up customer (PAQ not yet submitted)."""
    auth.sign_up("member@example.com", "member-pass", "Mia", "Member")
    token = auth.sign_in("member@example.com", "member-pass").access_token
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def instructor_headers(instructor):
    token = auth.sign_in("sam@example.com", "coach-pass").access_token
    return {"Authorization": f"Bearer {token}"}
