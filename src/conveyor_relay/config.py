"""
Client Configuration

``ConveyorConfig`` is resolved once, when an orchestrator is built, and is
never consulted as process-wide state afterwards. Several orchestrators with
different configurations can therefore target different chains and relay
environments at the same time.

Resolution order for the relay endpoint:
    explicit ``relayer_url`` -> random choice from the environment's pool
"""

import os
import random
from typing import Dict, Literal, Optional

import dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .engine.exceptions import ConfigurationError
from .evm.constants import (
    DEFAULT_FORWARDER_ADDRESS,
    NO_FEE_TOKEN,
    PERMIT_DOMAIN_NAME,
    RELAYER_ENDPOINTS,
    to_checksum,
)
from .evm.receipts import ReceiptPollPolicy
from .schemas.versions import RelayApiVersion


class ConveyorConfig(BaseModel):
    """
    Explicit configuration of one meta-transaction client.

    Attributes:
        environment: Relay environment, ``"staging"`` or ``"production"``.
        relayer_url: Relay endpoint; chosen at random from the environment's
            pool when not supplied.
        api_version: Relay API version used in ``/v{n}/metaTx/<operation>``.
        forwarder_addresses: Per-chain forwarder overrides.
        default_forwarder: Forwarder for chains absent from ``forwarder_addresses``.
        no_fee_token: Fee-token sentinel meaning "no fee".
        permit_domain_name: EIP-712 domain name of permit documents.
        receipt_poll: Receipt polling bound.
        request_timeout: HTTP timeout in seconds for relay and price source.

    Example::

        config = ConveyorConfig(environment="production")
        config.forwarder_for(137)
    """
    model_config = ConfigDict(frozen=True)

    environment: Literal["staging", "production"] = Field(default="staging")
    relayer_url: Optional[str] = Field(default=None, description="Relay endpoint")
    api_version: RelayApiVersion = Field(default=RelayApiVersion.V3)
    forwarder_addresses: Dict[int, str] = Field(default_factory=dict)
    default_forwarder: str = Field(default=DEFAULT_FORWARDER_ADDRESS)
    no_fee_token: str = Field(default=NO_FEE_TOKEN)
    permit_domain_name: str = Field(default=PERMIT_DOMAIN_NAME)
    receipt_poll: ReceiptPollPolicy = Field(default_factory=ReceiptPollPolicy)
    request_timeout: float = Field(default=30.0, gt=0)

    @model_validator(mode="before")
    @classmethod
    def _pick_relayer(cls, data):
        if isinstance(data, dict) and not data.get("relayer_url"):
            environment = data.get("environment", "staging")
            pool = RELAYER_ENDPOINTS.get(environment)
            if not pool:
                raise ConfigurationError(f"No relay endpoints for environment {environment!r}")
            data = {**data, "relayer_url": random.choice(pool)}
        return data

    def forwarder_for(self, chain_id: int) -> str:
        """Checksummed forwarder address for ``chain_id``."""
        address = self.forwarder_addresses.get(chain_id, self.default_forwarder)
        if not address:
            raise ConfigurationError(f"No forwarder configured for chain {chain_id}")
        return to_checksum(address)

    @classmethod
    def from_env(cls, **overrides) -> "ConveyorConfig":
        """
        Build a configuration from the environment (and a ``.env`` file).

        Environment Variables:
            - CONVEYOR_ENV: ``staging`` or ``production``
            - CONVEYOR_RELAYER_URL: Relay endpoint override
            - CONVEYOR_API_VERSION: Relay API version
            - CONVEYOR_FORWARDER_ADDRESS: Default forwarder override
            - CONVEYOR_NO_FEE_TOKEN: "No fee" sentinel override

        Args:
            **overrides: Fields that take precedence over the environment.

        Raises:
            ConfigurationError: An environment value is invalid.
        """
        dotenv.load_dotenv()
        values = {}
        if os.getenv("CONVEYOR_ENV"):
            values["environment"] = os.getenv("CONVEYOR_ENV")
        if os.getenv("CONVEYOR_RELAYER_URL"):
            values["relayer_url"] = os.getenv("CONVEYOR_RELAYER_URL")
        if os.getenv("CONVEYOR_API_VERSION"):
            try:
                values["api_version"] = RelayApiVersion.from_value(os.getenv("CONVEYOR_API_VERSION"))
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
        if os.getenv("CONVEYOR_FORWARDER_ADDRESS"):
            values["default_forwarder"] = os.getenv("CONVEYOR_FORWARDER_ADDRESS")
        if os.getenv("CONVEYOR_NO_FEE_TOKEN"):
            values["no_fee_token"] = os.getenv("CONVEYOR_NO_FEE_TOKEN")
        values.update(overrides)
        return cls(**values)
