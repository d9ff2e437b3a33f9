"""
Relayer Configuration

Loads relayer settings from the environment (and a ``.env`` file, via
python-dotenv) into a validated ``RelayerSettings`` model.

Environment Variables:
    - RPC_URL: JSON-RPC endpoint (required for the on-chain ledger)
    - RELAYER_PRIVATE_KEY: Relayer account key (alias: ADMIN_PRIVATE_KEY)
    - FACILITATOR_ADDRESS: Facilitator contract address (required)
    - TOKEN_ADDRESS: Permit token address (alias: USDC_ADDRESS) (required)
    - CHAIN_ID: Expected chain ID (required)
    - FEE_BENEFICIARY: Fee recipient (default: relayer account)
    - MAX_BATCH_SIZE: Bulk recipient cap (default: 50)
    - FINGERPRINT_MODE: ``signature`` or ``nonce_bound`` (default: signature)
    - SIGNATURE_REJECTION_POLICY: ``keep_consumed`` or ``release`` (default: keep_consumed)
    - PORT: HTTP port (default: 3001)
    - REQUEST_TIMEOUT: RPC timeout in seconds (default: 60)
"""

import os
from typing import Mapping, Optional

import dotenv
from pydantic import BaseModel, Field, ValidationError

from .engine.exceptions import ConfigurationError
from .permits.schemas import FingerprintMode, SignatureRejectionPolicy


def _first(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value is not None and value.strip():
            return value.strip()
    return None


class RelayerSettings(BaseModel):
    """Validated relayer configuration."""

    rpc_url: Optional[str] = Field(default=None, description="JSON-RPC endpoint")
    relayer_private_key: Optional[str] = Field(default=None, repr=False, description="Relayer key")
    facilitator_address: str = Field(..., description="Facilitator contract address")
    token_address: str = Field(..., description="Permit token address")
    chain_id: int = Field(..., gt=0, description="Expected chain ID")
    fee_beneficiary: Optional[str] = Field(default=None, description="Fee recipient")
    max_batch_size: int = Field(default=50, ge=1, description="Bulk recipient cap")
    fingerprint_mode: FingerprintMode = Field(default=FingerprintMode.SIGNATURE)
    signature_rejection_policy: SignatureRejectionPolicy = Field(
        default=SignatureRejectionPolicy.KEEP_CONSUMED
    )
    port: int = Field(default=3001, gt=0, lt=65536, description="HTTP port")
    request_timeout: int = Field(default=60, gt=0, description="RPC timeout (seconds)")

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        load_dotenv: bool = True,
    ) -> "RelayerSettings":
        """
        Build settings from ``env`` (default: ``os.environ``).

        Raises:
            ConfigurationError: If a required variable is missing or a value
                does not parse. The message names the variable, never its value.
        """
        if env is None:
            if load_dotenv:
                dotenv.load_dotenv()
            env = os.environ

        raw = {
            "rpc_url": _first(env, "RPC_URL"),
            "relayer_private_key": _first(env, "RELAYER_PRIVATE_KEY", "ADMIN_PRIVATE_KEY"),
            "facilitator_address": _first(env, "FACILITATOR_ADDRESS"),
            "token_address": _first(env, "TOKEN_ADDRESS", "USDC_ADDRESS"),
            "chain_id": _first(env, "CHAIN_ID"),
            "fee_beneficiary": _first(env, "FEE_BENEFICIARY"),
            "max_batch_size": _first(env, "MAX_BATCH_SIZE"),
            "fingerprint_mode": _first(env, "FINGERPRINT_MODE"),
            "signature_rejection_policy": _first(env, "SIGNATURE_REJECTION_POLICY"),
            "port": _first(env, "PORT"),
            "request_timeout": _first(env, "REQUEST_TIMEOUT"),
        }

        missing = [
            name for name, key in (
                ("FACILITATOR_ADDRESS", "facilitator_address"),
                ("TOKEN_ADDRESS", "token_address"),
                ("CHAIN_ID", "chain_id"),
            )
            if raw[key] is None
        ]
        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

        try:
            return cls.model_validate({key: value for key, value in raw.items() if value is not None})
        except ValidationError as exc:
            fields = sorted({str(err["loc"][0]).upper() for err in exc.errors() if err.get("loc")})
            raise ConfigurationError(f"Invalid configuration values: {', '.join(fields)}") from None

    def require_chain_access(self) -> None:
        """
        Check the settings needed for the on-chain ledger.

        Raises:
            ConfigurationError: If RPC_URL or RELAYER_PRIVATE_KEY is missing.
        """
        missing = []
        if not self.rpc_url:
            missing.append("RPC_URL")
        if not self.relayer_private_key:
            missing.append("RELAYER_PRIVATE_KEY")
        if missing:
            raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")
