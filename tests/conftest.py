import sys
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any, Dict, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from permit_backend.config import Base, settings  # noqa: E402
import permit_backend.config as app_config  # noqa: E402
import permit_backend.main as app_main  # noqa: E402
# Import the full models module so every table registers with Base metadata.
from permit_backend.models import models as _all_models  # noqa: E402,F401
from permit_backend.models.models import PermitType, Profile  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _configure_global_test_db(tmp_path_factory):
    """Configure the app-wide SessionLocal/engine so TestClient uses a DB with all tables."""
    db_dir = tmp_path_factory.mktemp("globaldb")
    db_path = db_dir / "app.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    app_config.SessionLocal = SessionLocal
    app_config.engine = engine
    app_main.SessionLocal = SessionLocal
    app_main.engine = engine
    yield
    engine.dispose()


@pytest.fixture(autouse=True)
def _fast_notification_timing(monkeypatch):
    monkeypatch.setattr(settings, "notification_grace_seconds", 0.0)
    monkeypatch.setattr(settings, "notification_retry_backoff_seconds", 0.0)


@pytest.fixture
def db_engine(tmp_path):
    """A fresh SQLite database per test, usable from background threads."""
    db_path = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> Callable[[], Session]:
    return sessionmaker(bind=db_engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def create_profile(db_session: Session) -> Callable[..., Profile]:
    counter = {"value": 0}

    def _create(role: str = "citizen", email: Optional[str] = None, **fields: Any) -> Profile:
        counter["value"] += 1
        profile = Profile(
            email=email or f"{role}{counter['value']}@example.com",
            role=role,
            full_name=fields.pop("full_name", f"{role.title()} {counter['value']}"),
            **fields,
        )
        db_session.add(profile)
        db_session.commit()
        return profile

    return _create


@pytest.fixture
def create_permit_type(db_session: Session) -> Callable[[str], PermitType]:
    titles = {
        "building": "Building Permit",
        "business": "Business Permit",
        "motorela": "Motorela Permit",
        "generic": "Barangay Clearance",
    }

    def _create(kind: str) -> PermitType:
        slug = f"{kind}-permit"
        existing = db_session.query(PermitType).filter(PermitType.slug == slug).first()
        if existing:
            return existing
        permit_type = PermitType(slug=slug, title=titles[kind], kind=kind)
        db_session.add(permit_type)
        db_session.commit()
        return permit_type

    return _create


@pytest.fixture
def motorela_payload() -> Dict[str, Any]:
    return {
        "application_no": "MTR-2025-001",
        "date": "2025-03-01",
        "body_no": "B-17",
        "chassis_no": "CH-99812",
        "make": "Kawasaki",
        "motor_no": "MN-44120",
        "route": "Poblacion - Terminal",
        "plate_no": "ABC-123",
        "operator": "J. Cruz",
        "operator_address": "12 Rizal St.",
        "contact": "09171234567",
        "driver": "P. Santos",
        "driver_address": "34 Mabini St.",
        "cedula_no": "CED-5521",
        "place_issued": "City Hall",
        "date_issued": "2025-01-10",
    }


@pytest.fixture
def building_payload() -> Dict[str, Any]:
    return {
        "application_no": "BLD-2025-010",
        "bp_no": "BP-7781",
        "owner_signature_date": "2025-02-01",
        "applicant_lastname": "Reyes",
        "applicant_firstname": "Ana",
        "applicant_mi": "L",
        "applicant_tin": "123-456-789",
        "ownership_form": "Individual",
        "address": "45 Bonifacio Ave.",
        "applicant_ctc_no": "CTC-1001",
        "applicant_ctc_date": "2025-01-05",
        "applicant_ctc_place": "City Hall",
        "applicant_signature_date": "2025-02-01",
        "construction_location": "Lot 4, Block 2, Riverside",
        "scope_of_work": "New Construction",
        "occupancy_use": "Residential",
        "lot_area": "120.5",
        "floor_area": "",
        "cost_of_construction": "1,500,000",
        "date_of_construction": "2025-04-01",
        "inspector_name": "Engr. B. Lim",
        "inspector_address": "9 Luna St.",
        "prc_no": "PRC-5512",
        "ptr_no": "PTR-2231",
        "inspector_issued_at": "Cebu City",
        "inspector_validity": "2026-12-31",
        "engineer_ctc_no": "CTC-2002",
        "engineer_ctc_date": "2025-01-06",
        "engineer_ctc_place": "Cebu City",
    }


@pytest.fixture
def business_payload() -> Dict[str, Any]:
    return {
        "tax_year": "2025",
        "control_no": "BUS-0099",
        "mode_of_payment": "Annually",
        "application_type": "New",
        "amendment": "",
        "org_type": "Single",
        "tax_payer_lastname": "Dela Cruz",
        "tax_payer_firstname": "Maria",
        "tax_payer_middlename": "Santos",
        "tin": "987-654-321",
        "ctc_no": "CTC-3003",
        "owner_address": "78 Quezon Blvd.",
        "phone": "09181112222",
        "email": "maria@example.com",
        "business_name": "Maria's Sari-Sari Store",
        "nature_of_business": "Retail",
        "business_address": "80 Quezon Blvd.",
        "business_area": "25 sqm",
        "business_activity_code": "47110",
        "line_of_business": "Retail - Groceries",
        "no_of_units": "1",
        "capitalization": "50000",
        "essential_sales": "",
        "non_essential_sales": "",
        "total_employees": "2",
        "employees_in_lgu": "",
        "lessor_name": "",
        "lessor_address": "",
    }
