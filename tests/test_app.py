"""Tests for CLI argument handling and config layering."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from vicoa_bridge.app import build_parser, main, resolve_config

_BRIDGE_VARS = [
    "VICOA_API_KEY", "VICOA_API_URL", "VICOA_BASE_URL", "VICOA_AGENT_INSTANCE_ID",
    "VICOA_AGENT_NAME", "OPENCODE_SERVER_URL", "VICOA_POLL_INTERVAL",
    "VICOA_HTTP_TIMEOUT", "VICOA_LOG_LEVEL", "VICOA_PROJECT_DIR",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _BRIDGE_VARS:
        monkeypatch.delenv(name, raising=False)


def test_flags_override_yaml_and_env(tmp_path, monkeypatch):
    monkeypatch.setenv("VICOA_API_KEY", "env-key")
    monkeypatch.setenv("OPENCODE_SERVER_URL", "http://env:1")
    path = tmp_path / "bridge.yaml"
    path.write_text(
        "vicoa:\n  poll_interval: 3\n  agent_name: Yaml\n"
        "opencode:\n  url: http://yaml:2\n",
        encoding="utf-8",
    )
    args = build_parser().parse_args([
        "--config", str(path),
        "--opencode-url", "http://flag:3",
        "--project-dir", str(tmp_path),
        "--verbose",
    ])
    config = resolve_config(args)

    assert config.api_key == "env-key"
    assert config.agent_name == "Yaml"
    assert config.poll_interval_seconds == 3.0
    assert config.opencode_url == "http://flag:3"
    assert config.project_dir == str(tmp_path.resolve())
    assert config.log_level == "DEBUG"


def test_poll_interval_flag(tmp_path):
    args = build_parser().parse_args(["--poll-interval", "0.25"])
    with patch("vicoa_bridge.app.get_api_key", return_value="file-key"):
        config = resolve_config(args)
    assert config.poll_interval_seconds == 0.25
    assert config.api_key == "file-key"


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as exc:
        build_parser().parse_args(["--version"])
    assert exc.value.code == 0
    assert "vicoa-bridge" in capsys.readouterr().out


@patch("vicoa_bridge.app.configure_logging")
def test_bad_config_exits_2(_logging, tmp_path):
    argv = ["vicoa-bridge", "--no-log-file", "--config", str(tmp_path / "absent.yaml")]
    with patch("sys.argv", argv), pytest.raises(SystemExit) as exc:
        main()
    assert exc.value.code == 2


@patch("vicoa_bridge.app.configure_logging")
def test_missing_api_key_exits_1(_logging):
    with patch("sys.argv", ["vicoa-bridge", "--no-log-file"]), \
            patch("vicoa_bridge.app.get_api_key", return_value=None), \
            patch("vicoa_bridge.app.run_bridge") as run_bridge, \
            pytest.raises(SystemExit) as exc:
        main()
    assert exc.value.code == 1
    run_bridge.assert_not_called()


@patch("vicoa_bridge.app.configure_logging")
def test_bad_env_value_exits_2(_logging, monkeypatch):
    monkeypatch.setenv("VICOA_API_KEY", "k")
    monkeypatch.setenv("VICOA_POLL_INTERVAL", "fast")
    with patch("sys.argv", ["vicoa-bridge", "--no-log-file"]), \
            patch("vicoa_bridge.app.run_bridge") as run_bridge, \
            pytest.raises(SystemExit) as exc:
        main()
    assert exc.value.code == 2
    run_bridge.assert_not_called()


@patch("vicoa_bridge.app.configure_logging")
def test_zero_registry_limit_exits_2(_logging, tmp_path, monkeypatch):
    monkeypatch.setenv("VICOA_API_KEY", "k")
    path = tmp_path / "bridge.yaml"
    path.write_text("bridge:\n  echo_buffer_size: 0\n", encoding="utf-8")
    with patch("sys.argv", ["vicoa-bridge", "--no-log-file", "--config", str(path)]), \
            patch("vicoa_bridge.app.run_bridge") as run_bridge, \
            pytest.raises(SystemExit) as exc:
        main()
    assert exc.value.code == 2
    run_bridge.assert_not_called()
