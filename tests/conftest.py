import pytest

from deskforms.app import create_app
from deskforms.config import Settings


@pytest.fixture(params=["sqlite", "json"])
def settings(request, tmp_path, monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", request.param)
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "deskforms.db"))
    monkeypatch.setenv("JSON_PATH", str(tmp_path / "deskforms.json"))
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("AUTH_MODE", "none")
    monkeypatch.delenv("UPLOAD_MAX_BYTES", raising=False)
    monkeypatch.delenv("TICKET_TIMEZONE", raising=False)
    return Settings()


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def storage(app):
    return app.state.storage

