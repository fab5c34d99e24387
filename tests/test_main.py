"""
Tests for the command line entry point
"""

import json
from unittest.mock import AsyncMock

import pytest

from hackbot import main as main_module
from hackbot.constants import DEFAULT_CONFIG_FILE


def test_parser_defaults():
    args = main_module.build_parser().parse_args([])
    assert args.config == DEFAULT_CONFIG_FILE
    assert args.health_check is False
    assert args.no_watch is False


def test_health_check_passes_for_valid_config(tmp_path, sample_config_dict):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(sample_config_dict), encoding="utf-8")
    assert main_module.health_check(str(path)) == 0


@pytest.mark.parametrize("content", [None, "{oops", json.dumps({"globals": {"nick": "n"}})])
def test_health_check_fails_for_unusable_config(tmp_path, content):
    path = tmp_path / "config.json"
    if content is not None:
        path.write_text(content, encoding="utf-8")
    assert main_module.health_check(str(path)) == 1


def test_run_health_check_exits_with_status(tmp_path, sample_config_dict, monkeypatch):
    monkeypatch.setattr(main_module.LoggerConfigurator, "configure", lambda self: None)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(sample_config_dict), encoding="utf-8")
    with pytest.raises(SystemExit) as exc:
        main_module.run(["--health-check", "--config", str(path)])
    assert exc.value.code == 0


@pytest.mark.asyncio
async def test_main_passes_config_file_only_when_watching(tmp_path, sample_config_dict, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(sample_config_dict), encoding="utf-8")
    run_clients = AsyncMock()
    monkeypatch.setattr(main_module, "run_clients", run_clients)

    await main_module.main(str(path), watch=True)
    await main_module.main(str(path), watch=False)

    assert run_clients.await_args_list[0].args[1] == str(path)
    assert run_clients.await_args_list[1].args[1] is None


@pytest.mark.asyncio
async def test_main_exits_on_missing_config(tmp_path):
    with pytest.raises(SystemExit):
        await main_module.main(str(tmp_path / "missing.json"))
