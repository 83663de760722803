"""Shared fixtures: temp SQLite database, API client and users."""
import os
import tempfile

_TEST_DATA_DIR = tempfile.mkdtemp(prefix="dumpquiz-tests-")
os.environ["DATA_DIR"] = _TEST_DATA_DIR
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DATA_DIR}/test.db"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["ADMIN_EMAILS"] = "admin@example.com"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from dumpquiz.auth import create_access_token  # noqa: E402
from dumpquiz.database import SessionLocal, drop_db, get_db, init_db  # noqa: E402
from dumpquiz.main import app  # noqa: E402
from dumpquiz.models import Choice, Question, User  # noqa: E402
from dumpquiz.routers.quizzes import get_blob_store  # noqa: E402
from dumpquiz.services.archive import BlobStore  # noqa: E402
from dumpquiz.services.quiz_store import QuizStore  # noqa: E402


def make_question(number, answer=("A",), letters="ABCD", text=None):
    """Build a question with one choice per letter."""
    return Question(
        number=number,
        text=text or f"Question {number}?",
        choices=tuple(Choice(letter=letter, text=f"Option {letter} of {number}") for letter in letters),
        answer=tuple(answer),
        explanation=f"Because of {number}.",
    )


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        drop_db()


@pytest.fixture
def store(db):
    return QuizStore.from_session(db, chunk_size=3)


@pytest.fixture
def blob_store(tmp_path):
    return BlobStore(tmp_path / "archive")


@pytest.fixture
def client(db, blob_store):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _create_user(db, email, is_admin=False):
    user = User(email=email, password_hash="unused", is_admin=is_admin)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db):
    return _create_user(db, "student@example.com")


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}


@pytest.fixture
def admin_headers(db):
    admin = _create_user(db, "admin@example.com", is_admin=True)
    return {"Authorization": f"Bearer {create_access_token(admin.id, admin.email)}"}
