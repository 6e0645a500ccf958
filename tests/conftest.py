import pytest

from app import create_app
from checkin.modules.database_manager import DatabaseManager
from checkin.modules.qr_codec import QRCodec
from checkin.modules.event_manager import EventManager
from checkin.modules.registration_manager import RegistrationManager
from checkin.modules.auth_manager import AuthManager
from checkin.modules.verification_service import VerificationService


@pytest.fixture
def db_manager(tmp_path):
    manager = DatabaseManager(str(tmp_path / "checkin.db"), timeout=10.0)
    yield manager
    manager.close_all_connections()


@pytest.fixture
def qr_codec():
    return QRCodec(box_size=2, border=1)


@pytest.fixture
def event_manager(db_manager):
    return EventManager(db_manager)


@pytest.fixture
def registration_manager(db_manager, qr_codec):
    return RegistrationManager(db_manager, qr_codec)


@pytest.fixture
def auth_manager(db_manager):
    return AuthManager(db_manager, password_min_length=6)


@pytest.fixture
def verification_service(event_manager, registration_manager, qr_codec):
    return VerificationService(event_manager, registration_manager, qr_codec)


@pytest.fixture
def organizer(auth_manager):
    return auth_manager.create_organizer("owner@example.com", "secret123", "Olive Owner")["user"]


@pytest.fixture
def other_organizer(auth_manager):
    return auth_manager.create_organizer("rival@example.com", "secret123", "Rita Rival")["user"]


@pytest.fixture
def event(event_manager, organizer):
    return event_manager.create_event(organizer["id"], {
        "title": "Spring Meetup",
        "date": "2026-04-01",
        "time": "18:00",
        "location": "Hall A",
    })["event"]


@pytest.fixture
def registration(registration_manager, event):
    result = registration_manager.create_registration(event, {"name": "Ada Attendee", "email": "ada@example.com"})
    assert result["success"], result
    return result


@pytest.fixture
def app(tmp_path):
    app = create_app("testing", DATABASE_PATH=str(tmp_path / "app.db"), VERIFY_DEBUG=True, SECRET_KEY="test")
    yield app
    app.extensions["checkin"]["db"].close_all_connections()


@pytest.fixture
def client(app):
    return app.test_client()
