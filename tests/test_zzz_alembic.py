"""Alembic migration tests.

File named test_zzz_alembic.py to sort LAST in pytest collection order.
"""

import os
import subprocess
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]


def _alembic(*args: str, database_url: str) -> subprocess.CompletedProcess[str]:
    env = {**os.environ, "STAKEIDX_DATABASE_URL": database_url}
    return subprocess.run(
        [sys.executable, "-m", "alembic", *args],
        capture_output=True,
        text=True,
        cwd=ROOT,
        env=env,
    )


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'migrations.db'}"


def test_alembic_upgrade_head(database_url: str) -> None:
    """alembic upgrade head succeeds and current shows the latest revision."""
    result = _alembic("upgrade", "head", database_url=database_url)
    assert result.returncode == 0, f"alembic upgrade failed: {result.stderr}"

    result = _alembic("current", database_url=database_url)
    assert result.returncode == 0
    assert "001_baseline" in result.stdout


def test_alembic_downgrade_base(database_url: str) -> None:
    """The baseline migration drops cleanly."""
    assert _alembic("upgrade", "head", database_url=database_url).returncode == 0
    result = _alembic("downgrade", "base", database_url=database_url)
    assert result.returncode == 0, f"alembic downgrade failed: {result.stderr}"
