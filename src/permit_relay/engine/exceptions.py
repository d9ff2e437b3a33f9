"""
Exception and Error Definitions Module

Defines the error taxonomy for permit decoding, permit validation and ledger
submission. Every error is terminal for the request that triggered it; none
is retried by the relay itself.

Each class carries a stable ``code`` (returned to HTTP callers) and the
``http_status`` used by the relayer server.

Exception Hierarchy:
    RelayerError (root)
    ├── MalformedAmount
    ├── MalformedSignature
    ├── PermitValidationError
    │   ├── InvalidRecipient
    │   │   └── RecipientLimitExceeded
    │   ├── ZeroAmount
    │   ├── InvalidFeeAmount
    │   ├── PermitExpired
    │   ├── PermitAlreadyUsed
    │   ├── InsufficientBalance
    │   └── UnvalidatedPermit
    ├── InvalidPermitSignature
    ├── LedgerSubmissionFailed
    └── ConfigurationError
"""


class RelayerError(Exception):
    """
    Root exception class for all relay errors.

    Messages must never contain key material or raw signature bytes; they are
    returned verbatim to HTTP callers.
    """

    code: str = "RelayerError"
    http_status: int = 400


class MalformedAmount(RelayerError):
    """
    Raised when a human-decimal amount cannot be converted exactly.

    This includes scenarios such as:
    - Non-numeric input
    - Negative values
    - More fractional digits than the token precision can hold
    """

    code = "MalformedAmount"


class MalformedSignature(RelayerError):
    """
    Raised when a signature cannot even be parsed.

    Wrong byte length or a recovery id outside {0, 1, 27, 28}. Distinct from
    ``InvalidPermitSignature``, which means a well-formed signature by the
    wrong signer or over the wrong message.
    """

    code = "MalformedSignature"


class PermitValidationError(RelayerError):
    """
    Base exception for permit validation failures.

    Parent class for all rejections produced by the permit validator.
    """

    code = "PermitValidationError"


class InvalidRecipient(PermitValidationError):
    """
    Raised when the owner or a recipient is the null identity or not an address.

    Also covers an empty recipient list on a bulk request.
    """

    code = "InvalidRecipient"


class RecipientLimitExceeded(InvalidRecipient):
    """Raised when a bulk request lists more recipients than the batch cap."""

    code = "RecipientLimitExceeded"


class ZeroAmount(PermitValidationError):
    """Raised when the total value or any recipient amount is zero."""

    code = "ZeroAmount"


class InvalidFeeAmount(PermitValidationError):
    """
    Raised when the fee split is inconsistent.

    Single: ``fee_amount >= value``. Bulk: ``total_value`` differs from
    ``sum(amounts) + fee_amount``.
    """

    code = "InvalidFeeAmount"


class PermitExpired(PermitValidationError):
    """
    Raised when the permit deadline is in the past.

    Attributes:
        deadline: The expired permit deadline
        current_time: Time used for the comparison
    """

    code = "PermitExpired"

    def __init__(self, message: str, *, deadline: int, current_time: int):
        super().__init__(message)
        self.deadline = deadline
        self.current_time = current_time


class PermitAlreadyUsed(PermitValidationError):
    """
    Raised when the permit's fingerprint has already been consumed.

    Attributes:
        fingerprint: 0x-prefixed hex fingerprint of the rejected permit
    """

    code = "PermitAlreadyUsed"
    http_status = 409

    def __init__(self, message: str, *, fingerprint: str = ""):
        super().__init__(message)
        self.fingerprint = fingerprint


class InsufficientBalance(PermitValidationError):
    """
    Raised when the owner's ledger balance is below the permit value.

    Attributes:
        required: Amount required
        available: Amount available
    """

    code = "InsufficientBalance"

    def __init__(self, message: str, *, required: int, available: int):
        super().__init__(message)
        self.required = required
        self.available = available


class UnvalidatedPermit(PermitValidationError):
    """Raised when the executor is handed a permit the validator did not consume."""

    code = "UnvalidatedPermit"


class InvalidPermitSignature(RelayerError):
    """
    Raised when the ledger's permit primitive rejects a well-formed signature.

    The signature recovered to someone other than the owner, or was made over
    a different message (wrong domain name/version, nonce, value, deadline).
    """

    code = "InvalidPermitSignature"


class LedgerSubmissionFailed(RelayerError):
    """
    Raised when the ledger fails to finalize an operation for a non-signature reason.

    Attributes:
        tx_reference: Transaction reference if one was assigned
    """

    code = "LedgerSubmissionFailed"
    http_status = 502

    def __init__(self, message: str, *, tx_reference: str = ""):
        super().__init__(message)
        self.tx_reference = tx_reference


class ConfigurationError(RelayerError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing required environment variables
    - Invalid numeric or enum values
    """

    code = "ConfigurationError"
    http_status = 500
