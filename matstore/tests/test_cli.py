"""
Tests for the matstore CLI.

Validates:
- Commands and their exit codes
- JSON output
"""

import json

import pytest

from matstore.cli import EXIT_DOMAIN_ERROR, EXIT_OK, EXIT_SYSTEM_ERROR, main
from matstore.config import StoreConfig
from matstore.presets import PRESET_DEFINITIONS
from matstore.store import MaterialStore


def _run(args):
    with pytest.raises(SystemExit) as exc_info:
        main(args)
    return exc_info.value.code


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def custom_id(data_dir):
    with MaterialStore(StoreConfig.for_directory(data_dir, background_writes=False)) as store:
        return store.save_current_as("Mine", "glass")


def test_list_json(data_dir, capsys):
    assert _run(["--data-dir", str(data_dir), "list", "--json"]) == EXIT_OK
    records = json.loads(capsys.readouterr().out)
    assert {r["id"] for r in records} == set(PRESET_DEFINITIONS)
    assert all(r["isPreset"] for r in records)


def test_list_by_type(data_dir, capsys):
    assert _run(["--data-dir", str(data_dir), "list", "--type", "metal"]) == EXIT_OK
    out = capsys.readouterr().out
    assert "gold-metal" in out
    assert "clear-glass" not in out


def test_list_uses_environment(data_dir, monkeypatch, capsys):
    monkeypatch.setenv("MATSTORE_DATA_DIR", str(data_dir))
    assert _run(["list"]) == EXIT_OK
    assert (data_dir / "materials.db").exists()


def test_show(data_dir, capsys):
    assert _run(["--data-dir", str(data_dir), "show", "gold-metal"]) == EXIT_OK
    record = json.loads(capsys.readouterr().out)
    assert record["name"] == "Gold Metal"
    assert record["properties"]["color"] == "#FFD700"


def test_show_missing(data_dir, capsys):
    assert _run(["--data-dir", str(data_dir), "show", "nope"]) == EXIT_DOMAIN_ERROR
    assert "Material not found: nope" in capsys.readouterr().err


def test_delete_custom(data_dir, custom_id, capsys):
    assert _run(["--data-dir", str(data_dir), "delete", custom_id]) == EXIT_OK
    assert _run(["--data-dir", str(data_dir), "show", custom_id]) == EXIT_DOMAIN_ERROR


def test_delete_preset(data_dir, capsys):
    assert _run(["--data-dir", str(data_dir), "delete", "clear-glass"]) == EXIT_DOMAIN_ERROR
    assert "built-in material" in capsys.readouterr().err


def test_status_json(data_dir, custom_id, capsys):
    assert _run(["--data-dir", str(data_dir), "status", "--json"]) == EXIT_OK
    status = json.loads(capsys.readouterr().out)
    assert status["custom"] == 1
    assert status["degraded"] is False


def test_degraded_delete_is_system_error(tmp_path, capsys):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    assert _run(["--data-dir", str(blocker), "delete", "custom-1"]) == EXIT_SYSTEM_ERROR


def test_requires_command():
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 2
