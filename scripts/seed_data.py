#!/usr/bin/env python
"""
Seed script to populate the database with sample data for local development.

Usage:
    python scripts/seed_data.py --citizens 3
"""

import argparse
from typing import List

from permit_backend.auth.jwt import create_access_token
from permit_backend.config import Base, SessionLocal, engine
from permit_backend.main import ensure_permit_types
from permit_backend.models.models import Permit, PermitType, Profile
from permit_backend.services.permits import PermitRepository

SAMPLE_MOTORELA = {
    "application_no": "MTR-0001",
    "date": "2025-01-15",
    "body_no": "B-101",
    "chassis_no": "CH-55501",
    "make": "Honda",
    "motor_no": "MN-7781",
    "route": "Poblacion - Market",
    "plate_no": "ABC-123",
    "operator": "J. Cruz",
    "operator_address": "12 Rizal St.",
    "contact": "09171234567",
    "driver": "P. Santos",
    "driver_address": "34 Mabini St.",
    "cedula_no": "",
    "place_issued": "",
    "date_issued": "",
}


def get_or_create_profile(session, email: str, role: str, full_name: str) -> Profile:
    profile = session.query(Profile).filter(Profile.email == email).first()
    if profile:
        return profile
    profile = Profile(email=email, role=role, full_name=full_name, is_active=True)
    session.add(profile)
    session.commit()
    session.refresh(profile)
    return profile


def create_citizen_bundle(session, index: int) -> Permit:
    citizen = get_or_create_profile(session, f"citizen{index}@example.com", "citizen", f"Citizen {index}")
    permit_type = session.query(PermitType).filter(PermitType.slug == "motorela-permit").one()
    details = {"motorela": {**SAMPLE_MOTORELA, "application_no": f"MTR-{index:04d}"}}
    return PermitRepository(session).create(citizen.id, permit_type.id, f"{index} Rizal St.", details)


def seed_session(session, citizens: int) -> List[Permit]:
    ensure_permit_types(session)
    admin = get_or_create_profile(session, "admin@example.com", "admin", "Permit Administrator")
    permits = [create_citizen_bundle(session, index) for index in range(1, citizens + 1)]
    print(f"Admin token: {create_access_token({'sub': str(admin.id)})}")
    return permits


def seed(citizens: int) -> List[Permit]:
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        return seed_session(session, citizens)


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed development data.")
    parser.add_argument("--citizens", type=int, default=3, help="Number of citizen applications to create.")
    args = parser.parse_args()
    permits = seed(args.citizens)
    print(f"Seeded {len(permits)} permit application(s).")


if __name__ == "__main__":
    main()
