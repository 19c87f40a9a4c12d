"""
Tests for client configuration resolution.
"""
import pytest
from pydantic import ValidationError

from conveyor_relay.config import ConveyorConfig
from conveyor_relay.engine.exceptions import ConfigurationError
from conveyor_relay.evm.constants import RELAYER_ENDPOINTS, ChainId
from conveyor_relay.schemas.versions import RelayApiVersion

from mocks import FORWARDER_ADDRESS, RELAY_URL, TARGET_ADDRESS


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "CONVEYOR_ENV",
        "CONVEYOR_RELAYER_URL",
        "CONVEYOR_API_VERSION",
        "CONVEYOR_FORWARDER_ADDRESS",
        "CONVEYOR_NO_FEE_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("conveyor_relay.config.dotenv.load_dotenv", lambda *a, **k: False)
    return monkeypatch


def test_relayer_picked_from_environment_pool():
    config = ConveyorConfig(environment="production")

    assert config.relayer_url in RELAYER_ENDPOINTS["production"]


def test_explicit_relayer_wins():
    config = ConveyorConfig(environment="production", relayer_url=RELAY_URL)

    assert config.relayer_url == RELAY_URL


def test_unknown_environment():
    with pytest.raises(ConfigurationError):
        ConveyorConfig(environment="qa")


def test_forwarder_lookup():
    override = TARGET_ADDRESS.lower()
    config = ConveyorConfig(forwarder_addresses={ChainId.MATIC: override})

    assert config.forwarder_for(ChainId.MATIC) == TARGET_ADDRESS
    assert config.forwarder_for(ChainId.MAINNET) == FORWARDER_ADDRESS


def test_config_is_immutable():
    config = ConveyorConfig()

    with pytest.raises(ValidationError):
        config.environment = "production"


def test_from_env(clean_env):
    clean_env.setenv("CONVEYOR_ENV", "production")
    clean_env.setenv("CONVEYOR_RELAYER_URL", RELAY_URL)
    clean_env.setenv("CONVEYOR_API_VERSION", "3")

    config = ConveyorConfig.from_env(request_timeout=5.0)

    assert config.environment == "production"
    assert config.relayer_url == RELAY_URL
    assert config.api_version == RelayApiVersion.V3
    assert config.request_timeout == 5.0


def test_from_env_rejects_unknown_api_version(clean_env):
    clean_env.setenv("CONVEYOR_API_VERSION", "9")

    with pytest.raises(ConfigurationError):
        ConveyorConfig.from_env()
