import os
import tempfile
from pathlib import Path

import pytest

# Settings are read at import time, so point them at scratch space before sensus is imported.
_SCRATCH = Path(tempfile.mkdtemp(prefix="sensus-tests-"))
os.environ.setdefault("DB_PATH", str(_SCRATCH / "sensus.db"))
os.environ.setdefault("UPLOAD_DIR", str(_SCRATCH / "uploads"))
os.environ.setdefault("GEMINI_API_KEY", "test-key")

from sensus.db.connection import run_migrations  # noqa: E402
from sensus.repositories.submission_repository import SubmissionRepository  # noqa: E402


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "sensus.db")
    run_migrations(path)
    return path


@pytest.fixture
def repository(db_path):
    return SubmissionRepository(db_path)
