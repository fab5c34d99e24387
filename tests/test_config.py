"""
Tests for configuration models, repository, loader and watcher
"""

import json
from unittest.mock import Mock

import pytest
from pydantic import ValidationError

from hackbot.config.loader import ConfigLoader, parse_config
from hackbot.config.model import BotConfig, ServerConfig, _normalize_channels
from hackbot.config.repository import ConfigRepository, atomic_write_json
from hackbot.config.watcher import ConfigFileHandler, ConfigWatcher
from hackbot.constants import DEFAULT_RECONNECT_INTERVAL_SECONDS


class TestModels:
    def test_servers_inherit_globals(self, sample_config):
        libera = sample_config.servers[0]
        assert libera.nick == "hackbot"
        assert libera.username == "hackbot"
        assert libera.real_name == "Hack Bot"
        assert libera.ctcp_version == "hackbot 0.1"
        assert libera.reconnect_interval_seconds == 5

    def test_server_values_override_globals(self, sample_config):
        onion = sample_config.servers[1]
        assert onion.nick == "ghost"
        assert onion.username == "ghost"
        assert onion.reconnect_interval_seconds == 30

    def test_proxy_reference_is_resolved(self, sample_config):
        onion = sample_config.servers[1]
        assert onion.proxy_config is not None
        assert onion.proxy_config.address == "127.0.0.1:9050"
        assert sample_config.servers[0].proxy_config is None

    def test_channels_are_normalized(self, sample_config):
        assert sample_config.servers[0].channels == ["#python", "#hackers"]

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("#a,#b", ["#a", "#b"]),
            ("a, ,#a,b", ["#a", "#b"]),
            (["&local", " c "], ["&local", "#c"]),
            (None, []),
        ],
    )
    def test_normalize_channels(self, raw, expected):
        assert _normalize_channels(raw) == expected

    def test_autoconnect_filter(self, sample_config):
        assert [s.name for s in sample_config.autoconnect_servers] == ["libera", "onion"]

    def test_interval_falls_back_to_default(self):
        config = BotConfig.from_dict(
            {"globals": {"nick": "n"}, "servers": [{"name": "a", "address": "h"}]}
        )
        assert config.servers[0].reconnect_interval_seconds == DEFAULT_RECONNECT_INTERVAL_SECONDS

    def test_unknown_proxy_is_rejected(self):
        with pytest.raises(ValidationError, match="unknown proxy"):
            BotConfig.from_dict(
                {
                    "globals": {"nick": "n"},
                    "servers": [{"name": "a", "address": "h", "proxy": "missing"}],
                }
            )

    def test_missing_nick_is_rejected(self):
        with pytest.raises(ValidationError, match="no nick"):
            BotConfig.from_dict({"servers": [{"name": "a", "address": "h"}]})

    def test_duplicate_server_names_rejected(self):
        with pytest.raises(ValidationError, match="unique"):
            BotConfig.from_dict(
                {
                    "globals": {"nick": "n"},
                    "servers": [
                        {"name": "a", "address": "h1"},
                        {"name": "a", "address": "h2"},
                    ],
                }
            )

    def test_negative_interval_rejected(self):
        with pytest.raises(ValidationError):
            ServerConfig.model_validate(
                {"name": "a", "address": "h", "reconnect_interval_seconds": -1}
            )

    def test_records_are_read_only(self, sample_config):
        with pytest.raises(ValidationError):
            sample_config.servers[0].nick = "other"

    def test_password_is_inherited_unless_set(self):
        config = BotConfig.from_dict(
            {
                "globals": {"nick": "n", "password": "shared"},
                "servers": [
                    {"name": "a", "address": "h"},
                    {"name": "b", "address": "h", "password": "own"},
                ],
            }
        )
        assert [s.password for s in config.servers] == ["shared", "own"]

    @pytest.mark.parametrize(
        "address", ["irc.example.net:notaport", "irc.example.net:0", "h:70000", "[::1", "[::1]x"]
    )
    def test_bad_server_address_is_rejected(self, address):
        with pytest.raises(ValidationError, match="address"):
            ServerConfig.model_validate({"name": "a", "address": address})

    @pytest.mark.parametrize("address", ["h", "h:6697", "[::1]:6697", "::1"])
    def test_good_server_address_is_accepted(self, address):
        assert ServerConfig.model_validate({"name": "a", "address": address}).address == address

    def test_bad_proxy_address_is_rejected(self, sample_config_dict):
        sample_config_dict["proxies"][0]["address"] = "127.0.0.1:99999"
        with pytest.raises(ValidationError, match="port out of range"):
            BotConfig.from_dict(sample_config_dict)


class TestRepositoryAndLoader:
    def test_load_raw_missing_file(self, tmp_path):
        assert ConfigRepository(tmp_path / "nope.json").load_raw() == {}

    def test_load_raw_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        assert ConfigRepository(path).load_raw() == {}

    def test_bare_list_is_server_list(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text(json.dumps([{"name": "a", "address": "h"}, "junk"]), encoding="utf-8")
        assert ConfigRepository(path).load_raw() == {"servers": [{"name": "a", "address": "h"}]}

    def test_atomic_write_is_read_back(self, tmp_path, sample_config_dict):
        path = tmp_path / "config.json"
        repo = ConfigRepository(path)
        atomic_write_json(path, sample_config_dict)
        assert json.loads(path.read_text(encoding="utf-8")) == sample_config_dict
        assert repo.load_raw() == sample_config_dict
        assert [p.name for p in path.parent.iterdir()] == ["config.json"]

    def test_rejects_non_path(self):
        with pytest.raises(TypeError):
            ConfigRepository(42)  # type: ignore[arg-type]

    def test_get_configuration(self, tmp_path, sample_config_dict):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(sample_config_dict), encoding="utf-8")
        config = ConfigLoader(str(path)).get_configuration()
        assert [s.name for s in config.servers] == ["libera", "onion", "manual"]

    def test_get_configuration_exits_on_missing_file(self, tmp_path):
        with pytest.raises(SystemExit):
            ConfigLoader(str(tmp_path / "missing.json")).get_configuration()

    def test_get_configuration_exits_on_invalid_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"servers": [{"name": "a"}]}), encoding="utf-8")
        with pytest.raises(SystemExit):
            ConfigLoader(str(path)).get_configuration()

    def test_parse_config_raises_validation_error(self):
        with pytest.raises(ValidationError):
            parse_config({"servers": [{"address": "h"}]})


class TestWatcher:
    def test_valid_change_is_forwarded(self, tmp_path, sample_config_dict):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(sample_config_dict), encoding="utf-8")
        callback = Mock()
        ConfigWatcher(str(path), callback).on_config_changed()
        callback.assert_called_once()
        (config,) = callback.call_args.args
        assert isinstance(config, BotConfig)
        assert len(config.servers) == 3

    def test_invalid_change_is_ignored(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"servers": [{"name": "x"}]}), encoding="utf-8")
        callback = Mock()
        ConfigWatcher(str(path), callback).on_config_changed()
        callback.assert_not_called()

    def test_identical_config_does_not_restart(self, tmp_path, sample_config_dict, sample_config):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(sample_config_dict), encoding="utf-8")
        callback = Mock()
        watcher = ConfigWatcher(str(path), callback, current=sample_config)
        watcher.on_config_changed()
        callback.assert_not_called()

        sample_config_dict["globals"]["nick"] = "renamed"
        path.write_text(json.dumps(sample_config_dict), encoding="utf-8")
        watcher.on_config_changed()
        callback.assert_called_once()
        assert watcher.current.servers[0].nick == "renamed"

    def test_handler_forwards_each_new_file_version_once(self, tmp_path, sample_config_dict):
        path = tmp_path / "config.json"
        path.write_text("{}", encoding="utf-8")
        watcher = Mock()
        handler = ConfigFileHandler(str(path), watcher)

        handler.on_any_event(Mock(src_path=str(path), dest_path="", is_directory=False))
        watcher.on_config_changed.assert_not_called()

        path.write_text(json.dumps(sample_config_dict), encoding="utf-8")
        handler.on_any_event(Mock(src_path=str(tmp_path / "other.json"), dest_path="", is_directory=False))
        watcher.on_config_changed.assert_not_called()

        handler.on_any_event(Mock(src_path=str(path), dest_path="", is_directory=False))
        handler.on_any_event(Mock(src_path=str(path), dest_path="", is_directory=False))
        watcher.on_config_changed.assert_called_once()

    def test_rename_onto_config_is_seen(self, tmp_path, sample_config_dict):
        path = tmp_path / "config.json"
        watcher = Mock()
        handler = ConfigFileHandler(str(path), watcher)
        path.write_text(json.dumps(sample_config_dict), encoding="utf-8")
        handler.on_any_event(
            Mock(src_path=str(tmp_path / ".tmp123"), dest_path=str(path), is_directory=False)
        )
        watcher.on_config_changed.assert_called_once()

    def test_start_and_stop(self, tmp_path):
        watcher = ConfigWatcher(str(tmp_path / "config.json"), Mock())
        watcher.start()
        try:
            assert watcher.running is True
        finally:
            watcher.stop()
        assert watcher.running is False
        assert watcher.observer is None

    def test_missing_directory_does_not_start(self, tmp_path):
        watcher = ConfigWatcher(str(tmp_path / "nope" / "config.json"), Mock())
        watcher.start()
        assert watcher.running is False
