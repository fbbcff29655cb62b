# tests/conftest.py
import io
import uuid
import os
import tempfile

# --- STEP 0: Environment for the app under test ---
# config.py reads these at import time, so they must be set before anything imports it.
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["STORAGE_TYPE"] = "local"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="media-gallery-uploads-")
os.environ["EMAIL_SERVICE_TYPE"] = "console"
os.environ["ENVIRONMENT"] = "test"

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from PIL import Image as PILImage
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# --- STEP 1: Import from the application ---
from main import app
from models.models import Base, User, Gallery
from db import crud
from db.database import get_db
from auth_utils import hash_password, create_user_token
from dependencies import get_storage_service, get_email_service
from services.storage_service import StorageService
from services.email_service import EmailService

DEFAULT_PASSWORD = "secret123"


# --- STEP 2: A dedicated TEST database engine ---
# The StaticPool keeps a single in-memory SQLite connection shared across threads/sessions.
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# --- STEP 3: Database set up and tear down for every test ---
@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


# --- STEP 4: Service doubles ---
@pytest.fixture
def storage(tmp_path):
    return StorageService(mode="local", base_path=str(tmp_path / "uploads"))

@pytest.fixture
def email_service():
    """Real console templates, recorded calls."""
    return MagicMock(wraps=EmailService(mode="console"))


# --- STEP 5: The configured TestClient ---
@pytest.fixture(scope="function")
def client(db_session, storage, email_service):
    # The session stays open across requests so objects created by a test remain usable.
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_service] = lambda: storage
    app.dependency_overrides[get_email_service] = lambda: email_service

    yield TestClient(app)

    app.dependency_overrides.clear()


# --- STEP 6: Users and tokens ---
@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(name=None, email=None, password=DEFAULT_PASSWORD, role="user", verified=True, active=True):
        counter["n"] += 1
        user = User(
            name=name or f"User {counter['n']}",
            email=(email or f"user{counter['n']}@example.com").lower(),
            hashed_password=hash_password(password) if password else None,
            role=role,
            is_email_verified=verified,
            is_active=active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user

@pytest.fixture
def user(make_user):
    return make_user(name="Alice", email="alice@example.com")

@pytest.fixture
def other_user(make_user):
    return make_user(name="Bob", email="bob@example.com")

@pytest.fixture
def admin_user(make_user):
    return make_user(name="Admin", email="admin@example.com", role="admin")

def bearer(user):
    return {"Authorization": f"Bearer {create_user_token(user)}"}

@pytest.fixture
def auth_headers():
    """Returns a function building the Authorization header for a user."""
    return bearer


# --- STEP 7: Image payloads ---
def make_image_bytes(fmt="PNG", size=(4, 3), color=(200, 30, 30)):
    buffer = io.BytesIO()
    PILImage.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()

@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG")

@pytest.fixture
def jpeg_bytes():
    return make_image_bytes("JPEG", size=(8, 6))


# --- STEP 8: Stored records ---
@pytest.fixture
def make_gallery(db_session):
    def _make_gallery(owner, name="Holidays", is_public=False, description=""):
        gallery = Gallery(name=name, description=description, is_public=is_public, user_id=owner.id)
        db_session.add(gallery)
        db_session.commit()
        db_session.refresh(gallery)
        return gallery
    return _make_gallery

@pytest.fixture
def make_media(db_session, storage):
    """Stores a real PNG and creates its media record, the way an upload would."""
    def _make_media(owner, title="Photo", is_public=False, gallery=None, tags=(), original_name="photo.png",
                    views=0, downloads=0):
        key = f"media-{uuid.uuid4().hex}.png"
        contents = make_image_bytes("PNG")
        storage.upload_file(io.BytesIO(contents), key, "image/png")
        media_data = {
            "title": title,
            "description": "",
            "filename": key,
            "original_name": original_name,
            "file_url": storage.get_file_url(key),
            "file_size": len(contents),
            "mime_type": "image/png",
            "width": 4,
            "height": 3,
            "user_id": owner.id,
            "gallery_id": gallery.id if gallery else None,
            "is_public": is_public,
            "views": views,
            "downloads": downloads,
        }
        return crud.create_media(db_session, media_data=media_data, tags=list(tags))
    return _make_media
