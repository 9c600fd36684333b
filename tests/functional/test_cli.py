"""Tests driving the command line entry point against a temporary database."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from attachment_lifecycle.__main__ import main
from tests.helpers import JPEG_HEADER, PNG_HEADER, make_image_bytes

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Points the CLI at a temporary database and blob directory."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("AVATAR_STORAGE_PATH", str(tmp_path / "avatars"))
    for name in (
        "AVATAR_PUBLIC_URL_PREFIX",
        "AVATAR_NAME_PREFIX",
        "AVATAR_MAX_FILE_SIZE",
        "AVATAR_ALLOWED_FORMATS",
        "ALEMBIC_CONFIG",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def run_cli(capsys: pytest.CaptureFixture[str], *argv: str) -> tuple[int, str]:
    exit_code = main(list(argv))
    return exit_code, capsys.readouterr().out.strip()


def test_photo_lifecycle(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    first = cli_env / "me.jpg"
    first.write_bytes(make_image_bytes(JPEG_HEADER, 12 * 1024))
    second = cli_env / "new.png"
    second.write_bytes(make_image_bytes(PNG_HEADER, 8 * 1024))
    avatars = cli_env / "avatars"

    assert run_cli(capsys, "init-db")[0] == 0
    assert run_cli(capsys, "add-subject", "u1") == (0, "created")
    assert run_cli(capsys, "add-subject", "u1") == (0, "exists")

    code, out = run_cli(capsys, "set-photo", "u1", str(first))
    assert code == 0
    first_url = json.loads(out)["photoUrl"]
    assert first_url.startswith("/uploads/avatars/avatar_")
    assert first_url.endswith(".jpg")

    code, out = run_cli(capsys, "show", "u1")
    assert (code, json.loads(out)) == (0, {"photoUrl": first_url})

    code, out = run_cli(capsys, "set-photo", "u1", str(second))
    assert code == 0
    second_url = json.loads(out)["photoUrl"]
    assert [p.name for p in avatars.iterdir()] == [second_url.rsplit("/", 1)[1]]

    code, out = run_cli(capsys, "clear-photo", "u1")
    assert (code, json.loads(out)) == (0, {"message": "Photo removed."})
    assert list(avatars.iterdir()) == []

    code, out = run_cli(capsys, "show", "u1")
    assert json.loads(out) == {"photoUrl": None}


def test_rejected_upload_exits_nonzero(
    cli_env: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    gif = cli_env / "photo.gif"
    gif.write_bytes(b"GIF89a" + b"\x00" * 64)

    run_cli(capsys, "init-db")
    run_cli(capsys, "add-subject", "u1")

    code, out = run_cli(capsys, "set-photo", "u1", str(gif))

    assert code == 1
    assert out == ""
    assert list((cli_env / "avatars").iterdir()) == []


def test_unknown_subject_exits_nonzero(
    cli_env: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    run_cli(capsys, "init-db")

    assert run_cli(capsys, "clear-photo", "ghost")[0] == 1


def test_missing_file_exits_nonzero(
    cli_env: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    run_cli(capsys, "init-db")
    run_cli(capsys, "add-subject", "u1")

    code, _ = run_cli(capsys, "set-photo", "u1", str(cli_env / "absent.jpg"))

    assert code == 1
