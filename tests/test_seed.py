from permit_backend.models.models import MotorelaPermit, PermitType, Profile
from scripts.seed_data import seed_session


def test_seed_session_creates_admin_types_and_applications(db_session, capsys):
    permits = seed_session(db_session, 2)

    assert len(permits) == 2
    assert db_session.query(PermitType).count() == 4
    assert db_session.query(Profile).filter(Profile.role == "admin").count() == 1
    assert db_session.query(MotorelaPermit).count() == 2
    assert "Admin token:" in capsys.readouterr().out


def test_seed_session_reuses_profiles(db_session, capsys):
    seed_session(db_session, 1)
    seed_session(db_session, 1)

    assert db_session.query(Profile).count() == 2
    assert db_session.query(PermitType).count() == 4
