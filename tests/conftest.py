import os

import boto3
import pytest
from botocore.stub import Stubber
from fastapi.testclient import TestClient

# Keep the module level clients in main away from real credentials
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_REGION", "us-east-2")

from dependencies import get_current_user, get_firestore, get_s3_service  # noqa: E402
from main import app  # noqa: E402
from models.user import User  # noqa: E402
from services.s3 import S3Service  # noqa: E402
from tests.fakes import InMemoryFirestoreDB  # noqa: E402

BUCKET = "feed-images"


@pytest.fixture
def db():
    fake = InMemoryFirestoreDB()
    for user_id in ("alice", "bob", "carol", "dave", "erin", "frank"):
        fake.add_user(user_id, user_id.capitalize())
    return fake


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-2",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def s3_stubber(s3_client):
    with Stubber(s3_client) as stubber:
        yield stubber


@pytest.fixture
def s3_service(s3_client):
    return S3Service(BUCKET, s3_client)


@pytest.fixture
def login():
    """Switch the authenticated user for subsequent requests"""
    def _login(user_id: str):
        app.dependency_overrides[get_current_user] = lambda: User(user_id=user_id, email=f"{user_id}@example.com")
    return _login


@pytest.fixture
def client(db, s3_service, login):
    app.dependency_overrides[get_firestore] = lambda: db
    app.dependency_overrides[get_s3_service] = lambda: s3_service
    login("alice")
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(db):
    app.dependency_overrides[get_firestore] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()
