from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolated_log_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHIPSFX_LOG_DIR", str(tmp_path))
