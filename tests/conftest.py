import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.db import build_engine
from app.db.repositories import FileOfferStorage, SqlOfferStorage
from app.main import create_app

USER1_HEADERS = {"Authorization": "Bearer token_user1"}
USER2_HEADERS = {"Authorization": "Bearer token_user2"}


def auth_headers(client: TestClient, username: str) -> dict:
    resp = client.post("/auth/token", json={"username": username})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['accessToken']}"}


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'test_offers.db'}",
        "data_file": str(tmp_path / "offers.json"),
        "storage_backend": "sql",
        "auto_create_schema": True,
        "jwt_secret": "test-secret",
        "log_level": "WARNING",
        "public_base_url": "https://offers.example.com",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture(params=["sql", "file"])
def client(request, tmp_path):
    app = create_app(make_settings(tmp_path, storage_backend=request.param))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sql_client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest_asyncio.fixture(params=["sql", "file"])
async def storage(request, tmp_path):
    settings = make_settings(tmp_path)
    if request.param == "sql":
        backend = SqlOfferStorage(build_engine(settings), create_schema=True)
    else:
        backend = FileOfferStorage(settings.data_file)

    await backend.init()
    yield backend
    await backend.close()


@pytest.fixture
def create_offer(client):
    def _create(headers=USER1_HEADERS, **body):
        body.setdefault("title", "Paris trip")
        body.setdefault("content", {"days": 3})
        resp = client.post("/offers", json=body, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp
    return _create
