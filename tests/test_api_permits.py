from fastapi.testclient import TestClient

from permit_backend.api.dependencies import get_db, get_session_factory
from permit_backend.auth.jwt import get_current_user
from permit_backend.main import app
from permit_backend.models.models import MotorelaPermit, Notification, Permit


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


def _use(session, session_factory, user):
    app.dependency_overrides[get_db] = _override_get_db(session)
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_current_user] = _override_user(user)


def test_motorela_application_end_to_end(
    db_session, session_factory, create_profile, create_permit_type, motorela_payload
):
    citizen = create_profile()
    admin = create_profile(role="admin")
    permit_type = create_permit_type("motorela")

    _use(db_session, session_factory, citizen)
    client = TestClient(app)
    try:
        response = client.post(
            "/permits/",
            json={"permit_type_id": permit_type.id, "address": "12 Rizal St.", "details": {"motorela": motorela_payload}},
        )
        assert response.status_code == 201
        created = response.json()
        permit_id = created["id"]
        assert created["status"] == "pending"
        assert created["permit_type"]["kind"] == "motorela"
        assert db_session.query(MotorelaPermit).filter_by(permit_id=permit_id).count() == 1

        response = client.post(f"/permits/{permit_id}/payments", json={"amount": "500.00", "payment_method": "gcash"})
        assert response.status_code == 201
        payment_id = response.json()["id"]

        _use(db_session, session_factory, admin)
        response = client.post(f"/payments/{payment_id}/status", json={"payment_status": "completed"})
        assert response.status_code == 200
        assert response.json()["payment_status"] == "completed"
        assert db_session.query(Notification).count() == 0

        response = client.post(f"/permits/{permit_id}/status", json={"status": "approved"})
        assert response.status_code == 200
        assert response.json()["status"] == "approved"

        _use(db_session, session_factory, citizen)
        response = client.get("/notifications/")
        assert response.status_code == 200
        notifications = response.json()
        assert len(notifications) == 1
        assert notifications[0]["type"] == "permit_ready"
        assert notifications[0]["permit_id"] == permit_id
        assert "Motorela Permit" in notifications[0]["message"]
        assert "ready to receive" in notifications[0]["message"]

        response = client.get(f"/permits/{permit_id}")
        assert response.status_code == 200
        detail = response.json()
        assert detail["subtype_source"] == "normalized"
        assert detail["subtype_payload"]["plate_no"] == "ABC-123"
        assert [entry["action"] for entry in detail["audit_trail"]] == ["status_changed", "created"]

        response = client.delete(f"/permits/{permit_id}")
        assert response.status_code == 409
        assert db_session.get(Permit, permit_id) is not None
    finally:
        client.close()
        app.dependency_overrides.clear()


def test_completing_payment_on_approved_permit_notifies(
    db_session, session_factory, create_profile, create_permit_type, motorela_payload
):
    citizen = create_profile()
    admin = create_profile(role="admin")
    permit_type = create_permit_type("motorela")

    _use(db_session, session_factory, citizen)
    client = TestClient(app)
    try:
        permit_id = client.post(
            "/permits/",
            json={"permit_type_id": permit_type.id, "details": {"motorela": motorela_payload}},
        ).json()["id"]
        payment_id = client.post(f"/permits/{permit_id}/payments", json={"amount": "500"}).json()["id"]

        _use(db_session, session_factory, admin)
        client.post(f"/permits/{permit_id}/status", json={"status": "approved"})
        assert db_session.query(Notification).one().type == "payment_required"

        client.post(f"/payments/{payment_id}/status", json={"payment_status": "completed"})

        types = [item.type for item in db_session.query(Notification).order_by(Notification.id).all()]
        assert types == ["payment_required", "permit_ready"]
    finally:
        client.close()
        app.dependency_overrides.clear()


def test_citizen_cannot_read_another_citizens_permit(
    db_session, session_factory, create_profile, create_permit_type, motorela_payload
):
    owner = create_profile()
    stranger = create_profile()
    permit_type = create_permit_type("motorela")

    _use(db_session, session_factory, owner)
    client = TestClient(app)
    try:
        permit_id = client.post(
            "/permits/",
            json={"permit_type_id": permit_type.id, "details": {"motorela": motorela_payload}},
        ).json()["id"]

        _use(db_session, session_factory, stranger)
        assert client.get(f"/permits/{permit_id}").status_code == 403
        assert client.delete(f"/permits/{permit_id}").status_code == 403
        assert client.get("/permits/").json() == []
    finally:
        client.close()
        app.dependency_overrides.clear()


def test_citizen_cannot_change_status(db_session, session_factory, create_profile, create_permit_type):
    citizen = create_profile()
    permit_type = create_permit_type("generic")

    _use(db_session, session_factory, citizen)
    client = TestClient(app)
    try:
        permit_id = client.post("/permits/", json={"permit_type_id": permit_type.id}).json()["id"]
        response = client.post(f"/permits/{permit_id}/status", json={"status": "approved"})
        assert response.status_code == 403
        assert client.get("/permits/all").status_code == 403
    finally:
        client.close()
        app.dependency_overrides.clear()


def test_validation_error_names_the_field(
    db_session, session_factory, create_profile, create_permit_type, motorela_payload
):
    citizen = create_profile()
    permit_type = create_permit_type("motorela")
    payload = dict(motorela_payload, chassis_no="")

    _use(db_session, session_factory, citizen)
    client = TestClient(app)
    try:
        response = client.post(
            "/permits/",
            json={"permit_type_id": permit_type.id, "details": {"motorela": payload}},
        )
        assert response.status_code == 422
        assert response.json()["detail"] == "Chassis No is required"
        assert response.json()["field"] == "chassis_no"
        assert db_session.query(Permit).count() == 0
    finally:
        client.close()
        app.dependency_overrides.clear()


def test_owner_can_edit_and_delete_pending_permit(
    db_session, session_factory, create_profile, create_permit_type, motorela_payload
):
    citizen = create_profile()
    permit_type = create_permit_type("motorela")

    _use(db_session, session_factory, citizen)
    client = TestClient(app)
    try:
        permit_id = client.post(
            "/permits/",
            json={"permit_type_id": permit_type.id, "details": {"motorela": motorela_payload}},
        ).json()["id"]

        changed = dict(motorela_payload, driver="L. Garcia")
        response = client.put(
            f"/permits/{permit_id}",
            json={"permit_type_id": permit_type.id, "address": "99 Luna St.", "details": {"motorela": changed}},
        )
        assert response.status_code == 200
        assert response.json()["address"] == "99 Luna St."
        assert db_session.query(MotorelaPermit).filter_by(permit_id=permit_id).one().driver == "L. Garcia"

        response = client.delete(f"/permits/{permit_id}")
        assert response.status_code == 200
        assert response.json()["deleted"]["permits"] == 1
        assert client.get(f"/permits/{permit_id}").status_code == 404
    finally:
        client.close()
        app.dependency_overrides.clear()


def test_reviewer_listings(db_session, session_factory, create_profile, create_permit_type):
    create_profile()
    staff = create_profile(role="staff")
    create_permit_type("motorela")
    create_permit_type("generic")

    _use(db_session, session_factory, staff)
    client = TestClient(app)
    try:
        types = client.get("/permits/types").json()
        assert [item["title"] for item in types] == ["Barangay Clearance", "Motorela Permit"]
        stats = client.get("/permits/stats").json()
        assert stats["total_users"] == 2
        assert stats["total_permits"] == 0
        assert client.get("/permits/approved").json() == []
        assert client.get("/permits/all").status_code == 200
    finally:
        client.close()
        app.dependency_overrides.clear()


def test_request_id_is_echoed(db_session, session_factory, create_profile):
    _use(db_session, session_factory, create_profile())
    client = TestClient(app)
    try:
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == "req-123"
        assert client.get("/health").headers["X-Request-ID"]
    finally:
        client.close()
        app.dependency_overrides.clear()
