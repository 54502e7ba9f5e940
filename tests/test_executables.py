from __future__ import annotations

import json
from pathlib import Path

from gamescout.stores.base import GameSource, ScanStatus
from gamescout.stores.epic import EpicScanner
from gamescout.stores.executables import (
    clean_folder_title,
    derive_package_title,
    find_executables,
    is_excluded,
    select_main_executable,
)
from gamescout.stores.gog import GOGScanner
from gamescout.stores.manual import ManualFolderScanner
from gamescout.stores.rockstar import RockstarScanner
from gamescout.stores.ubisoft import UbisoftScanner
from gamescout.stores.xbox import XboxScanner


def touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"MZ")
    return path


def test_denylist_is_case_insensitive() -> None:
    assert is_excluded("UnityCrashHandler64.exe") == True
    assert is_excluded("unins000.exe") == True
    assert is_excluded("Setup.EXE") == True
    assert is_excluded("Celeste.exe") == False


def test_find_executables_respects_depth(tmp_path: Path) -> None:
    touch(tmp_path / "Game.exe")
    touch(tmp_path / "a" / "b" / "c" / "Deep.exe")
    touch(tmp_path / "a" / "b" / "c" / "d" / "TooDeep.exe")
    touch(tmp_path / "readme.txt")

    names = [Path(p).name for p in find_executables(str(tmp_path))]
    assert names == ["Deep.exe", "Game.exe"]


def test_find_executables_depth_first_in_name_order(tmp_path: Path) -> None:
    touch(tmp_path / "b" / "Second.exe")
    touch(tmp_path / "a" / "First.exe")
    touch(tmp_path / "a" / "sub" / "Nested.exe")
    touch(tmp_path / "c.exe")

    names = [Path(p).name for p in find_executables(str(tmp_path))]
    assert names == ["First.exe", "Nested.exe", "Second.exe", "c.exe"]


def test_find_executables_skips_helpers(tmp_path: Path) -> None:
    touch(tmp_path / "unins000.exe")
    touch(tmp_path / "Redist" / "vcredist_x64.exe")
    touch(tmp_path / "Hades.exe")
    assert [Path(p).name for p in find_executables(str(tmp_path))] == ["Hades.exe"]


def test_select_prefers_folder_name() -> None:
    folder = "/games/Hollow Knight"
    candidates = ["/games/Hollow Knight/tools/editor.exe", "/games/Hollow Knight/hollow knight.exe"]
    assert select_main_executable(candidates, folder) == candidates[1]
    assert select_main_executable(candidates[:1], folder) == candidates[0]
    assert select_main_executable([], folder) is None


def test_title_cleanup() -> None:
    assert clean_folder_title("Hollow_Knight") == "Hollow Knight"
    assert clean_folder_title("Celeste v1.4.0.0") == "Celeste"
    assert clean_folder_title("Portal 2") == "Portal 2"


def test_derive_package_title() -> None:
    assert derive_package_title("Microsoft.MinecraftUWP_1.0.0.0_x64__8wekyb3d8bbwe") == "MinecraftUWP"
    assert derive_package_title("Publisher.Game_1.2.3.0_neutral__abc") == "Game"
    assert derive_package_title("Standalone") == "Standalone"


def test_manual_folder_scanner(tmp_path: Path) -> None:
    touch(tmp_path / "Hollow_Knight" / "hollow_knight.exe")
    touch(tmp_path / "Hollow_Knight" / "UnityCrashHandler64.exe")
    (tmp_path / "Empty").mkdir()

    results = ManualFolderScanner().scan(str(tmp_path))

    assert len(results) == 1
    game = results[0]
    assert game.source == GameSource.MANUAL_FOLDER
    assert game.title == "Hollow Knight"
    assert game.status == ScanStatus.AMBIGUOUS
    assert game.exe_path.endswith("hollow_knight.exe")


def test_epic_manifest_and_folder_fallback(tmp_path: Path) -> None:
    root = tmp_path / "Epic Games"
    install = root / "Control"
    touch(install / "Control.exe")
    touch(root / "Loose Game" / "Loose Game.exe")
    touch(root / "Epic Games Launcher" / "Portal" / "Binaries" / "EpicGamesLauncher.exe")
    manifests = root / "Epic Games Launcher" / "Data" / "Manifests"
    manifests.mkdir(parents=True)
    (manifests / "control.item").write_text(json.dumps({
        "DisplayName": "Control",
        "InstallLocation": str(install),
        "LaunchExecutable": "Control.exe",
        "CatalogItemId": "calluna",
        "AppName": "Calluna",
    }))

    results = EpicScanner().scan(str(root))

    assert [game.title for game in results] == ["Control", "Loose Game"]
    assert results[0].app_id == "calluna"
    assert results[0].exe_path == str(install / "Control.exe")
    assert results[1].app_id is None


def test_gog_info_file_wins(tmp_path: Path) -> None:
    root = tmp_path / "GOG Galaxy" / "Games"
    game = root / "Witcher3"
    touch(game / "bin" / "x64" / "witcher3.exe")
    (game / "goggame-1495134320.info").write_text(json.dumps({
        "gameId": "1495134320",
        "name": "The Witcher 3: Wild Hunt",
        "playTasks": [{"isPrimary": True, "path": "bin/x64/witcher3.exe"}],
    }))

    results = GOGScanner().scan(str(tmp_path / "GOG Galaxy"))

    assert len(results) == 1
    assert results[0].title == "The Witcher 3: Wild Hunt"
    assert results[0].app_id == "1495134320"
    assert results[0].source == GameSource.GOG


def test_ubisoft_ignores_launcher_binaries(tmp_path: Path) -> None:
    games = tmp_path / "games"
    touch(games / "Far Cry 5" / "bin" / "FarCry5.exe")
    touch(games / "Far Cry 5" / "UplayInstaller.exe")

    results = UbisoftScanner().scan(str(tmp_path))
    assert len(results) == 1
    assert results[0].exe_path.endswith("FarCry5.exe")


def test_rockstar_skips_launcher_folders(tmp_path: Path) -> None:
    touch(tmp_path / "Launcher" / "Launcher.exe")
    touch(tmp_path / "Social Club" / "subprocess.exe")
    touch(tmp_path / "Red Dead Redemption 2" / "RDR2.exe")

    results = RockstarScanner().scan(str(tmp_path))
    assert [game.title for game in results] == ["Red Dead Redemption 2"]


def test_xbox_packages_and_xbox_games(tmp_path: Path) -> None:
    apps = tmp_path / "WindowsApps"
    touch(apps / "Microsoft.VCLibs.140.00_14.0_x64__8wekyb3d8bbwe" / "vclibs.exe")
    touch(apps / "Publisher.Hades_1.0.0.0_x64__abc" / "Hades.exe")
    touch(apps / "Publisher.Hades_1.0.0.0_x64__abc" / "bin" / "Nested.exe")
    touch(tmp_path / "XboxGames" / "Starfield" / "Content" / "Starfield.exe")

    results = XboxScanner().scan(str(tmp_path))

    titles = [game.title for game in results]
    assert titles == ["Hades", "Starfield"]
    assert results[0].exe_path.endswith("Hades.exe")


def test_missing_roots_give_empty_lists(tmp_path: Path) -> None:
    missing = str(tmp_path / "missing")
    for scanner in (ManualFolderScanner(), GOGScanner(), UbisoftScanner(), XboxScanner(), EpicScanner()):
        assert scanner.scan(missing) == []
