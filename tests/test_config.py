from __future__ import annotations

import json
from pathlib import Path

from gamescout.config import (
    DEFAULT_PROVIDER_PRIORITY,
    CredentialStore,
    LauncherConfig,
    Settings,
    load_settings,
    save_settings,
)
from gamescout.utils.paths import get_data_dir, get_settings_path


def test_data_dir_honours_override(isolated_data_dir: Path) -> None:
    assert get_data_dir() == str(isolated_data_dir)
    assert get_settings_path() == str(isolated_data_dir / "settings.json")


def test_missing_settings_give_defaults(tmp_path: Path) -> None:
    settings = load_settings(str(tmp_path / "missing.json"))
    assert settings.launchers == []
    assert settings.provider_priority == DEFAULT_PROVIDER_PRIORITY


def test_corrupt_settings_give_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{broken")
    assert load_settings(str(path)).launchers == []


def test_save_and_load_settings(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    settings = Settings(
        launchers=[
            LauncherConfig(id="steam", path="/home/deck/.steam/steam", name="Steam"),
            LauncherConfig(id="gog", path="/games/gog", name="GOG", enabled=False),
        ],
        credentials={"rawg": {"api_key": "stored"}},
        provider_priority=["igdb", "steam"],
    )

    assert save_settings(settings, str(path)) == True
    loaded = load_settings(str(path))

    assert loaded == settings
    assert [launcher.id for launcher in loaded.enabled_launchers()] == ["steam"]


def test_malformed_launcher_entries_are_dropped(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"launchers": [{"path": "/no/id"}, {"id": "epic", "path": "/epic"}]}))
    loaded = load_settings(str(path))
    assert [launcher.id for launcher in loaded.launchers] == ["epic"]
    assert loaded.launchers[0].name == "epic"


def test_environment_overrides_stored_credentials() -> None:
    settings = Settings(credentials={
        "rawg": {"api_key": "stored"},
        "igdb": {"client_id": "stored-id", "client_secret": ""},
    })
    store = CredentialStore(settings, environ={"IGDB_CLIENT_SECRET": "env-secret", "RAWG_API_KEY": " "})

    assert store.get_credentials("rawg") == {"api_key": "stored"}
    assert store.get_credentials("igdb") == {"client_id": "stored-id", "client_secret": "env-secret"}
    assert store.get_credentials("steam") == {}


def test_environment_only_credentials() -> None:
    store = CredentialStore(environ={"STEAMGRIDDB_API_KEY": "sgdb"})
    assert store.get_credentials("steamgriddb") == {"api_key": "sgdb"}
