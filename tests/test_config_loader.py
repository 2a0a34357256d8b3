from pathlib import Path

import pytest

from carbon_deploy.config import (
    ConfigurationError,
    ConfirmationConfig,
    RPCConfig,
    load_confirmation_config,
    load_rpc_config,
)


def test_load_rpc_config_prefers_environment_over_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
        rpc:
          url: http://filehost:5172/rpc
          nexus: mainnet
          timeout: 5
        """
    )

    env_map = {
        "PHANTASMA_RPC_URL": "https://envhost/rpc",
        "CARBON_DEPLOY_RPC_TIMEOUT": "12.5",
    }

    config = load_rpc_config(config_path=config_path, env=env_map)

    assert isinstance(config, RPCConfig)
    assert config.url == "https://envhost/rpc"
    assert config.nexus == "mainnet"
    assert config.timeout == 12.5


def test_overrides_win_over_everything(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("rpc:\n  nexus: mainnet\n")

    config = load_rpc_config(
        config_path=config_path,
        env={"PHANTASMA_NEXUS": "simnet", "CARBON_DEPLOY_RPC_URL": "http://alias/rpc"},
        overrides={"nexus": "devnet"},
    )

    assert config.nexus == "devnet"
    assert config.url == "http://alias/rpc"


def test_defaults_when_default_file_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("carbon_deploy.config.DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")

    config = load_rpc_config(env={})

    assert config == RPCConfig()
    assert config.url == "http://localhost:5172/rpc"
    assert config.nexus == "testnet"


def test_explicit_missing_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Config file not found"):
        load_rpc_config(config_path=tmp_path / "nope.yaml", env={})


@pytest.mark.parametrize(
    "content, message",
    [
        ("- just\n- a list\n", "YAML mapping"),
        ("rpc: [1, 2]\n", "'rpc' to be a mapping"),
        ("rpc:\n  url: ftp://host/rpc\n", "Invalid RPC endpoint URL"),
        ("rpc:\n  timeout: soon\n", "Invalid number"),
    ],
)
def test_invalid_files_raise(tmp_path: Path, content: str, message: str) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(content)
    with pytest.raises(ConfigurationError, match=message):
        load_rpc_config(config_path=config_path, env={})


def test_confirmation_config_layers(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
        confirmation:
          max_attempts: 10
          delay_ms: 500
        """
    )

    config = load_confirmation_config(
        config_path=config_path,
        env={"CARBON_DEPLOY_CONFIRM_DELAY_MS": "250"},
        overrides={"failure_detail_attempts": 2, "max_attempts": None},
    )

    assert config == ConfirmationConfig(max_attempts=10, delay_ms=250, failure_detail_attempts=2)


def test_confirmation_config_rejects_non_integers(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("carbon_deploy.config.DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
    assert load_confirmation_config(env={}) == ConfirmationConfig(30, 1000, 6)
    with pytest.raises(ConfigurationError, match="CARBON_DEPLOY_CONFIRM_MAX_ATTEMPTS"):
        load_confirmation_config(env={"CARBON_DEPLOY_CONFIRM_MAX_ATTEMPTS": "many"})
