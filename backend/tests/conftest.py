import importlib
import sys
from pathlib import Path

import pytest


BACKEND_DIR = Path(__file__).resolve().parents[1]

# ``models`` stays cached: its tables must only be declared once per metadata.
MODULES = [
    "settings",
    "errors",
    "database",
    "runtime_settings",
    "naming",
    "bookmark_store",
    "folder_paths",
    "cleanup",
    "providers",
    "inference",
    "openrouter",
    "classifier",
    "bookmark_manager",
    "organizer",
    "app",
]


@pytest.fixture()
def sorter_env(tmp_path, monkeypatch):
    if str(BACKEND_DIR) not in sys.path:
        sys.path.insert(0, str(BACKEND_DIR))

    monkeypatch.chdir(tmp_path)
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    db_path = data_dir / "bookmarks.db"

    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("INIT_RUN", "0")
    monkeypatch.setenv("API_KEY", "")
    monkeypatch.setenv("AI_PROVIDER", "")
    monkeypatch.setenv("OPENROUTER_MODEL", "")
    monkeypatch.setenv("ORGANIZE_DELAY_SECONDS", "0")

    for name in MODULES:
        sys.modules.pop(name, None)

    modules = {name: importlib.import_module(name) for name in MODULES}
    modules["database"].init_db()
    modules["data_dir"] = data_dir
    return modules


@pytest.fixture()
def store(sorter_env):
    return sorter_env["bookmark_store"].BookmarkStore()
