from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from nestaway.core.database import get_db, init_db, make_engine
from nestaway.main import create_app
from nestaway.models.user import User
from nestaway.services.notifications import EmailSendError
from nestaway.services.verification_codes import InMemoryCodeRegistry
from nestaway.utils.auth import get_password_hash
from nestaway.utils.file_storage import LocalFileStorage

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00" + b"\x00" * 64


class MovableClock:
    def __init__(self):
        self.now = datetime.now(timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingSender:
    def __init__(self):
        self.sent = []
        self.fail = False

    def send_verification_code(self, email, code):
        if self.fail:
            raise EmailSendError("SMTP send failed: connection refused")
        self.sent.append((email, code))

    def last_code(self, email):
        codes = [code for to, code in self.sent if to == email]
        return codes[-1] if codes else None


class RecordingStorage(LocalFileStorage):
    """Local storage that remembers every upload/delete and can fail on demand."""

    def __init__(self, media_root):
        super().__init__(str(media_root), "http://testserver")
        self.uploaded = []
        self.deleted = []
        self.fail_on_upload = None

    async def upload(self, image):
        if self.fail_on_upload is not None and len(self.uploaded) == self.fail_on_upload:
            from nestaway.core.exceptions import UpstreamFailure

            raise UpstreamFailure("Image upload failed")
        stored = await super().upload(image)
        self.uploaded.append(stored)
        return stored

    async def delete(self, storage_id):
        self.deleted.append(storage_id)
        await super().delete(storage_id)


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return MovableClock()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def registry():
    return InMemoryCodeRegistry()


@pytest.fixture
def storage(tmp_path):
    return RecordingStorage(tmp_path / "media")


@pytest.fixture
def app(session_factory, registry, sender, storage, clock):
    app = create_app(
        code_registry=registry,
        notification_sender=sender,
        object_storage=storage,
        clock=clock,
    )

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make_user(email="host@example.com", password="secret1", verified=True, first_name="Hank", last_name="Host"):
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password_hash=get_password_hash(password),
            verified=verified,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def logged_in_host(client, make_user):
    user = make_user()
    resp = client.post("/api/auth/login", json={"email": user.email, "password": "secret1"})
    assert resp.status_code == 200
    return user


def image_files(count, name="photo.jpg", content_type="image/jpeg", data=JPEG_BYTES):
    return [("images", (f"{i}-{name}", data, content_type)) for i in range(count)]


def listing_form(**overrides):
    form = {
        "title": "Cliffside cabin",
        "description": "Wood stove and a view of the lake",
        "price": "150",
        "location": "Lake Tahoe, CA",
        "address": '{"street": "1 Pine Rd", "city": "Tahoe City", "state": "CA", "country": "USA", "zipCode": "96145"}',
        "category": "cabins",
        "roomType": "entire-home",
        "beds": "3",
        "bedrooms": "2",
        "bathrooms": "1.5",
        "amenities": '["wifi", "fireplace"]',
        "maxGuests": "4",
    }
    form.update(overrides)
    return {k: v for k, v in form.items() if v is not None}


def use_session(client, token):
    """Send `token` as the session cookie on every following request."""
    client.headers["Cookie"] = f"token={token}"
