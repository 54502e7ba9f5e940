from __future__ import annotations

from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path_factory, monkeypatch):
    """Keep settings and caches out of the real home directory."""
    data_dir = tmp_path_factory.mktemp("gamescout-data")
    monkeypatch.setenv("GAMESCOUT_DATA_DIR", str(data_dir))
    return data_dir
