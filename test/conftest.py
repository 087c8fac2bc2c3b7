"""Fixtures compartidos: settings aislados del entorno y Mongo en memoria (mongomock)."""
import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database.connection import MongoConnection
from main import create_app
from repositories.user_repository import USERS_COLLECTION, UserRepository, ensure_user_indexes

CONFIG_KEYS = (
    "ENV", "HOST", "PORT", "FORWARDED_ALLOW_IPS", "SHUTDOWN_TIMEOUT",
    "MONGODB_URI", "MONGO_DB", "MONGO_SERVER_SELECTION_TIMEOUT_MS", "MONGO_MAX_POOL_SIZE",
    "CLIENT_URL", "CORS_ORIGINS", "CORS_ALLOW_REGEX", "LOG_LEVEL", "PROJECT_NAME", "VERSION",
    "BCRYPT_ROUNDS",
)

ALLOWED_ORIGIN = "http://localhost:5173"
NETLIFY_PATTERN = r"^[a-z0-9-]+\.netlify\.app$"


@pytest.fixture
def make_settings(monkeypatch):
    def _make(**env):
        for key in CONFIG_KEYS:
            monkeypatch.delenv(key, raising=False)
        for key, value in env.items():
            monkeypatch.setenv(key, str(value))
        return Settings()
    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings(
        MONGODB_URI="mongodb://localhost:27017",
        CORS_ORIGINS=f"{ALLOWED_ORIGIN}, https://orbitcrm.netlify.app/",
        CORS_ALLOW_REGEX=NETLIFY_PATTERN,
        BCRYPT_ROUNDS=4,
    )


@pytest.fixture
def mongo(settings):
    connection = MongoConnection.from_settings(settings, client_factory=mongomock.MongoClient)
    connection.connect()
    ensure_user_indexes(connection)
    yield connection
    connection.close()


@pytest.fixture
def users(mongo):
    return UserRepository(mongo.collection(USERS_COLLECTION))


@pytest.fixture
def app(settings, mongo):
    return create_app(settings, mongo)


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
