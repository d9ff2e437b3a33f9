"""
EIP-712 / EIP-2612 typed-data containers and the permit message builder.

The message a holder signs must match, field for field, what the token's
native ``permit`` recomputes on the ledger. The domain ``name`` and
``version`` in particular differ between deployed tokens; a wrong value does
not fail loudly, it produces a signature that recovers to an unrelated
address. ``fetch_token_domain`` therefore reads both from the token instead
of assuming them.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Tuple

if TYPE_CHECKING:
    from ..ledgers.bases import Ledger

logger = logging.getLogger(__name__)

#: Domain name used when the token does not expose ``name()``.
DEFAULT_TOKEN_NAME = "Test Token"

#: Domain version used when the token does not expose ``version()``.
DEFAULT_TOKEN_VERSION = "1"


# -----------------------------
# EIP-712 Domain
# -----------------------------

@dataclass(frozen=True)
class EIP712Domain:
    """
    EIP-712 domain separator.
    Used to prevent signature replay across tokens and chains.
    """
    name: str
    version: str
    chainId: int
    verifyingContract: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chainId,
            "verifyingContract": self.verifyingContract,
        }


# -----------------------------
# Permit Message (EIP-2612)
# -----------------------------

@dataclass(frozen=True)
class PermitMessage:
    """
    Permit message as defined in EIP-2612.
    Authorizes ``spender`` to move ``value`` of the owner's tokens until ``deadline``.
    """
    owner: str
    spender: str
    value: int
    nonce: int
    deadline: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "spender": self.spender,
            "value": self.value,
            "nonce": self.nonce,
            "deadline": self.deadline,
        }


# -----------------------------
# EIP-712 Typed Data Wrapper
# -----------------------------

@dataclass(frozen=True)
class PermitTypedData:
    """
    EIP-712 typed data container for an EIP-2612 permit.

    ``to_dict()`` produces the ``{types, primaryType, domain, message}``
    layout consumed by ``eth_account`` and ``eth_signTypedData_v4``.

    Attributes:
        domain: EIP712Domain of the token contract.
        message: PermitMessage carrying the payload.
        primary_type: The primary EIP-712 type (always "Permit").
        types: The typed definitions required by EIP-712.
    """
    domain: EIP712Domain
    message: PermitMessage

    primary_type: str = "Permit"

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Permit": [
                {"name": "owner", "type": "address"},
                {"name": "spender", "type": "address"},
                {"name": "value", "type": "uint256"},
                {"name": "nonce", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
            ],
        },
        compare=False,
    )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the typed data into a dict compatible with EIP-712 signing.
        """
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain.to_dict(),
            "message": self.message.to_dict(),
        }


def build_permit_typed_data(
    *,
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
    chain_id: int,
    verifying_contract: str,
    token_name: str,
    token_version: str,
) -> PermitTypedData:
    """
    Build the EIP-2612 message a holder must sign.

    Pure and deterministic: identical inputs always produce an equal
    ``PermitTypedData``. For bulk transfers ``value`` is the batch total
    (recipient amounts plus fee); the recipient list itself is not signed.

    Args:
        owner:              Token holder address.
        spender:            Address allowed to pull the funds (the facilitator).
        value:              Amount in the token's smallest unit.
        nonce:              Holder's current permit counter on the token.
        deadline:           Unix timestamp after which the permit is unusable.
        chain_id:           EVM network ID.
        verifying_contract: Token contract address.
        token_name:         Domain ``name`` exactly as the token reports it.
        token_version:      Domain ``version`` exactly as the token reports it.

    Returns:
        ``PermitTypedData`` ready for ``sign_permit``.
    """
    domain = EIP712Domain(
        name=token_name,
        version=token_version,
        chainId=int(chain_id),
        verifyingContract=verifying_contract,
    )
    message = PermitMessage(
        owner=owner,
        spender=spender,
        value=int(value),
        nonce=int(nonce),
        deadline=int(deadline),
    )
    return PermitTypedData(domain=domain, message=message)


async def fetch_token_domain(ledger: "Ledger") -> Tuple[str, str]:
    """Read the token's EIP-712 domain ``name`` and ``version`` from the ledger.

    ``version()`` is not part of ERC-20 and many tokens omit it; ``name()``
    can be missing on minimal deployments. Both fall back to defaults with a
    warning.
    """
    try:
        name = await ledger.name()
    except Exception as exc:
        logger.warning("Token name() unavailable, using %r: %s", DEFAULT_TOKEN_NAME, exc)
        name = None

    try:
        version = await ledger.version()
    except Exception as exc:
        logger.warning("Token version() unavailable, using %r: %s", DEFAULT_TOKEN_VERSION, exc)
        version = None

    name = name if isinstance(name, str) and name else DEFAULT_TOKEN_NAME
    version = version if isinstance(version, str) and version else DEFAULT_TOKEN_VERSION
    return name, version


async def prepare_permit(
    ledger: "Ledger",
    *,
    owner: str,
    spender: str,
    value: int,
    deadline: int,
    chain_id: int,
    verifying_contract: str,
) -> PermitTypedData:
    """
    Build a permit message from live token state.

    Fetches the domain name/version and the owner's current nonce from the
    ledger, then delegates to ``build_permit_typed_data``.
    """
    token_name, token_version = await fetch_token_domain(ledger)
    nonce = await ledger.nonces(owner)
    logger.debug(
        "Preparing permit for %s with domain name=%r version=%r nonce=%d",
        owner, token_name, token_version, nonce,
    )
    return build_permit_typed_data(
        owner=owner,
        spender=spender,
        value=value,
        nonce=nonce,
        deadline=deadline,
        chain_id=chain_id,
        verifying_contract=verifying_contract,
        token_name=token_name,
        token_version=token_version,
    )
