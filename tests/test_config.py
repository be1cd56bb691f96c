import pytest

from bridge.config import BridgeConfig, ConfigError, load_config, ws_url


def test_ws_url_swaps_scheme_and_appends_bus_path():
    assert ws_url("https://bridge.example.com") == "wss://bridge.example.com/androidbus"
    assert ws_url("http://localhost:8081/") == "ws://localhost:8081/androidbus"


def test_defaults():
    config = BridgeConfig(base_url="https://b")
    assert config.request_timeout == 30.0
    assert config.announcement_timeout == 30.0
    assert config.reconnect_delays == (1.0, 2.0, 5.0, 10.0, 30.0)
    assert config.event_buffer_size == 100


def test_yaml_then_env_override(tmp_path):
    path = tmp_path / "bridge.yaml"
    path.write_text(
        "base_url: https://from-file\n"
        "username: alice\n"
        "password: pw\n"
        "reconnect_delays: [0.5, 1]\n"
        "event_buffer_size: 10\n"
        "custom: yes\n"
    )
    env = {"ARCUS_BRIDGE_URL": "https://from-env", "ARCUS_REQUEST_TIMEOUT": "5"}

    config = load_config(path, env=env).validate()

    assert config.base_url == "https://from-env"
    assert config.username == "alice"
    assert config.request_timeout == 5.0
    assert config.reconnect_delays == (0.5, 1.0)
    assert config.event_buffer_size == 10
    assert config.extra == {"custom": True}


def test_validation_requires_url_and_credentials():
    with pytest.raises(ConfigError):
        BridgeConfig().validate()
    with pytest.raises(ConfigError):
        BridgeConfig(base_url="https://b", username="only-user").validate()
    BridgeConfig(base_url="https://b", auth_token="t").validate()
    BridgeConfig(base_url="https://b").validate(require_credentials=False)


def test_invalid_values_rejected(tmp_path):
    with pytest.raises(ConfigError):
        BridgeConfig(base_url="https://b", auth_token="t", reconnect_delays=()).validate()
    with pytest.raises(ConfigError):
        load_config(env={"ARCUS_REQUEST_TIMEOUT": "soon"})
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.yaml", env={})
