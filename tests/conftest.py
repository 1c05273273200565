import pytest
from fastapi.testclient import TestClient

from vigenere_notes.main import app, build_pim, get_pim


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "vigenere-test.db")


@pytest.fixture
def pim(db_path):
    return build_pim(db_path)


@pytest.fixture
def client(pim):
    app.dependency_overrides[get_pim] = lambda: pim
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _register(client, username, password="secret1"):
    response = client.post("/register", json={"username": username, "password": password})
    assert response.status_code == 201, response.text
    return response.json()["token"]


@pytest.fixture
def auth_headers(client):
    return {"Authorization": f"Bearer {_register(client, 'alice')}"}


@pytest.fixture
def other_headers(client):
    return {"Authorization": f"Bearer {_register(client, 'bob')}"}
