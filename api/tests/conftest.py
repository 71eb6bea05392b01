import os
import tempfile

# Settings are read once at import time, so the environment is pinned first
os.environ.setdefault("ENV", "development")
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="edushare-test-"))
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
for _var in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "S3_BUCKET_NAME"):
    os.environ[_var] = ""

import pytest
from fastapi.testclient import TestClient

from edushare.config.database import create_db_engine
from edushare.core.credentials import JWTSessionStore, StaticCredentialVerifier
from edushare.core.dependencies import StoreHandle
from edushare.main import create_app
from edushare.models.content import ContentCreate, FileUpload
from edushare.models.student import StudentInfoInput
from edushare.routers import auth
from edushare.services.content_service import ContentService
from edushare.services.download_service import DownloadService
from edushare.services.lecturer_service import LecturerService
from edushare.utils.db_utils import DocumentStore
from edushare.utils.s3_utils import LocalBlobStore

LECTURER_EMAIL = "lecturer@example.edu"
LECTURER_PASSWORD = "correct-horse"
SECRET = "test-secret"

FAST_RETRY = {"max_attempts": 3, "base_delay": 0.01}


@pytest.fixture
def store(tmp_path):
    documents = DocumentStore(create_db_engine(f"sqlite:///{tmp_path / 'edushare.db'}"))
    documents.create_collections()
    yield documents
    documents.engine.dispose()


@pytest.fixture
def blobs(tmp_path):
    return LocalBlobStore(root=str(tmp_path / "files"), base_url="/files")


@pytest.fixture
def content_service(store, blobs):
    return ContentService(store, blobs, **FAST_RETRY)


@pytest.fixture
def lecturer_service(store):
    return LecturerService(store, **FAST_RETRY)


@pytest.fixture
def download_service(store, content_service):
    return DownloadService(store, content_service, **FAST_RETRY)


@pytest.fixture
def sessions():
    return JWTSessionStore(secret_key=SECRET)


@pytest.fixture(autouse=True)
def reset_login_attempts():
    auth.login_attempts.clear()
    yield
    auth.login_attempts.clear()


@pytest.fixture
def client(store, blobs, sessions):
    app = create_app(
        store=StoreHandle(documents=store, blobs=blobs, **FAST_RETRY),
        verifier=StaticCredentialVerifier(LECTURER_EMAIL, LECTURER_PASSWORD),
        sessions=sessions,
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def lecturer_headers(client):
    response = client.post("/api/auth/login", json={"email": LECTURER_EMAIL, "password": LECTURER_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def make_metadata(title="Syllabus", content_type="pdf", visibility="public", **extra):
    return ContentCreate(
        title=title,
        contentType=content_type,
        visibility=visibility,
        uploadedBy=LECTURER_EMAIL,
        **extra,
    )


def make_pdf(name="syllabus.pdf", data=b"%PDF-1.4 test"):
    return FileUpload(filename=name, data=data, content_type="application/pdf")


def make_student(email="ada@uni.edu", **overrides):
    fields = {
        "firstName": "Ada",
        "lastName": "Obi",
        "email": email,
        "matricNumber": "csc/2021/001",
        "department": "Computer Science",
        "level": "300 Level",
    }
    fields.update(overrides)
    return StudentInfoInput(**fields)
