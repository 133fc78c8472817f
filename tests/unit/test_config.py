import yaml

from crossroute.config import CrossrouteConfig, load_config
from crossroute.interfaces import ExecutionSettings


def test_load_config_from_yaml(tmp_path, monkeypatch):
    monkeypatch.delenv("CROSSROUTE_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("CROSSROUTE_API_URL", raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "api": {"url": "https://api.example/v1", "api_key": "secret"},
                "polling": {"interval": 2.5},
                "execution": {"infinite_approval": True, "gas_limit_margin_percent": 150},
                "chains": [
                    {"id": 1, "name": "Ethereum", "explorerUrls": ["https://etherscan.io"]}
                ],
                "database_url": "sqlite:///tmp/routes.db",
            }
        )
    )

    config = load_config(str(path))

    assert config.api.api_key == "secret"
    assert config.polling.interval == 2.5
    assert config.execution.infinite_approval is True
    assert config.execution.gas_limit_margin_percent == 150
    assert config.execution.default_slippage == 0.005
    assert config.chains[0].tx_link("0x1") == "https://etherscan.io/tx/0x1"
    assert config.database_url == "sqlite:///tmp/routes.db"


def test_load_config_from_env_path(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("polling:\n  interval: 1\n")
    monkeypatch.setenv("CROSSROUTE_CONFIG", str(path))

    config = load_config()

    assert config.polling.interval == 1


def test_env_overrides(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("CROSSROUTE_CONFIG", raising=False)
    monkeypatch.setenv("DATABASE_URL", "sqlite:///from-generic.db")
    monkeypatch.setenv("CROSSROUTE_DATABASE_URL", "sqlite:///from-crossroute.db")
    monkeypatch.setenv("CROSSROUTE_API_URL", "https://staging.example/v1")

    config = load_config()

    assert config.database_url == "sqlite:///from-crossroute.db"
    assert config.api.url == "https://staging.example/v1"


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ("CROSSROUTE_CONFIG", "CROSSROUTE_DATABASE_URL", "DATABASE_URL", "CROSSROUTE_API_URL"):
        monkeypatch.delenv(name, raising=False)

    config = load_config()

    assert config.database_url is None
    assert config.chains == []
    assert config.polling.interval == 4.0


def test_execution_settings_from_config():
    async def hook(chain_id):
        return None

    config = CrossrouteConfig(
        execution={
            "infinite_approval": True,
            "gas_limit_margin_percent": 150,
            "default_slippage": 0.01,
        }
    )

    settings = ExecutionSettings.from_config(config.execution, switch_chain_hook=hook)

    assert settings.infinite_approval is True
    assert settings.gas_limit_margin_percent == 150
    assert settings.default_slippage == 0.01
    assert settings.switch_chain_hook is hook
