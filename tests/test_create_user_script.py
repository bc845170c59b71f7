"""Tests for the create_user CLI."""

import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "create_user.py"


@pytest.fixture
def create_user_module():
    spec = importlib.util.spec_from_file_location("create_user", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_requires_email(create_user_module, monkeypatch, capsys):
    monkeypatch.delenv("CHIRPY_EMAIL", raising=False)
    assert create_user_module.main(["--password", "pw"]) == 1
    assert "--email" in capsys.readouterr().out


def test_creates_user(create_user_module, monkeypatch, capsys):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert create_user_module.main(["--email", "gus@pollos.com", "--password", "pw"]) == 0
    out = capsys.readouterr().out
    assert "Created user: gus@pollos.com" in out
    assert "pw" not in out.replace("gus@pollos.com", "")


def test_duplicate_exits_nonzero(create_user_module, capsys):
    result = create_user_module.create_user("gus@pollos.com", "pw")
    assert result["status"] == "created"
    # runtime is shared for the process; the store keeps the first row
    assert create_user_module.create_user("gus@pollos.com", "pw")["status"] == "exists"


def test_dry_run_releases_runtime(create_user_module, monkeypatch):
    from chirpy.service.runtime import get_runtime

    closed = []
    monkeypatch.setattr(get_runtime(), "close", lambda: closed.append(True))
    result = create_user_module.create_user("mike@pollos.com", "pw", dry_run=True)
    assert result["status"] == "dry_run"
    assert closed == [True]


def test_jwt_secret_from_dotenv_is_respected(create_user_module, monkeypatch, tmp_path):
    monkeypatch.delenv("JWT_SECRET", raising=False)
    (tmp_path / ".env").write_text("JWT_SECRET=from-dotenv\n")
    monkeypatch.chdir(tmp_path)
    assert create_user_module.main(["--email", "lydia@madrigal.com", "--password", "pw", "--dry-run"]) == 0
    assert "JWT_SECRET" not in create_user_module.os.environ
