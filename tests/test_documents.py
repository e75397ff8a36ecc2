import json

import pytest
from fastapi.testclient import TestClient

from permit_backend.api.dependencies import get_db
from permit_backend.auth.jwt import get_current_user
from permit_backend.core.errors import NotFoundError, ValidationError
from permit_backend.main import app
from permit_backend.models.models import PermitAudit, Profile
from permit_backend.services import documents as document_service
from permit_backend.services.permits import PermitRepository


def _override_get_db(session):
    def _generator():
        try:
            yield session
        finally:
            pass

    return _generator


def _override_user(user):
    def _provider():
        return user

    return _provider


@pytest.fixture
def permit(db_session, create_profile, create_permit_type):
    citizen = create_profile()
    permit_type = create_permit_type("generic")
    return PermitRepository(db_session).create(citizen.id, permit_type.id, "1 Main St.", None)


def test_add_document_defaults_name_from_path(db_session, permit):
    document = document_service.add_document(db_session, permit.id, "permits/7/cedula.png")

    assert document.file_name == "cedula.png"
    assert document.status == "pending"
    actions = [entry.action for entry in db_session.query(PermitAudit).filter_by(permit_id=permit.id)]
    assert "document_uploaded" in actions


def test_add_document_for_missing_permit(db_session):
    with pytest.raises(NotFoundError):
        document_service.add_document(db_session, 404, "permits/none.png")


def test_reject_then_approve_clears_rejection(db_session, create_profile, permit):
    admin = create_profile(role="admin")
    document = document_service.add_document(db_session, permit.id, "permits/7/cedula.png")

    rejected = document_service.reject_document(db_session, document.id, "  Blurry scan ", rejected_by=admin.id)
    assert rejected.status == "rejected"
    assert rejected.rejection_reason == "Blurry scan"
    assert rejected.rejected_at is not None
    assert rejected.rejected_by == admin.id
    entry = db_session.query(PermitAudit).filter_by(action="document_rejected").one()
    assert json.loads(entry.note) == {"document_id": document.id, "reason": "Blurry scan"}

    approved = document_service.approve_document(db_session, document.id, actor_id=admin.id)
    assert approved.status == "approved"
    assert approved.rejection_reason is None
    assert approved.rejected_at is None
    assert approved.rejected_by is None


def test_reject_requires_reason(db_session, permit):
    document = document_service.add_document(db_session, permit.id, "permits/7/cedula.png")

    with pytest.raises(ValidationError):
        document_service.reject_document(db_session, document.id, "   ", rejected_by=None)


def test_list_documents_newest_first(db_session, permit):
    first = document_service.add_document(db_session, permit.id, "permits/7/a.png")
    second = document_service.add_document(db_session, permit.id, "permits/7/b.png")

    assert [item.id for item in document_service.list_documents(db_session, permit.id)] == [second.id, first.id]


def test_document_review_endpoints(db_session, create_profile, permit):
    citizen = db_session.get(Profile, permit.applicant_id)
    admin = create_profile(role="admin")

    app.dependency_overrides[get_db] = _override_get_db(db_session)
    app.dependency_overrides[get_current_user] = _override_user(citizen)
    client = TestClient(app)
    try:
        response = client.post(f"/permits/{permit.id}/documents", json={"file_path": "permits/7/title.pdf"})
        assert response.status_code == 201
        document_id = response.json()["id"]
        assert client.post(f"/documents/{document_id}/approve").status_code == 403

        app.dependency_overrides[get_current_user] = _override_user(admin)
        response = client.post(f"/documents/{document_id}/reject", json={"reason": "Expired"})
        assert response.status_code == 200
        assert response.json()["rejection_reason"] == "Expired"

        response = client.get(f"/permits/{permit.id}/documents")
        assert [item["status"] for item in response.json()] == ["rejected"]

        assert client.post("/documents/9999/approve").status_code == 404
    finally:
        client.close()
        app.dependency_overrides.clear()
