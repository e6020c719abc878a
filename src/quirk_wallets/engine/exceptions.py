"""
Exception and Error Definitions Module

Defines the exception hierarchy for wallet provisioning, streaming delivery
and record persistence. Every exception carries a stable ``code`` used in
logs and result objects, and a ``retryable`` flag consulted by the
single-chain provisioner.

Exception Hierarchy:
    WalletServiceError (root)
    ├── ValidationError
    ├── ConfigurationError
    ├── ProvisioningError
    │   ├── UnsupportedChainError
    │   ├── NotOwnerError
    │   ├── RpcError
    │   ├── EventNotFoundError
    │   └── AttemptsExhaustedError
    ├── StreamInterruptedError
    ├── RecordStoreError
    └── InvalidTransition
"""

from typing import Optional


class WalletServiceError(Exception):
    """
    Root exception class for all project-specific exceptions.

    Attributes:
        code: Stable machine-readable identifier
        retryable: Whether the provisioner may retry after this failure
    """
    code: str = "wallet_service_error"
    retryable: bool = False


class ValidationError(WalletServiceError):
    """
    Raised when an incoming request is malformed or missing fields.

    Surfaced before any provisioning starts and before any stream is opened.
    """
    code = "validation_error"


class ConfigurationError(WalletServiceError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Malformed private key for a configured chain
    - Factory address that is not a valid EVM address
    """
    code = "configuration_error"


class ProvisioningError(WalletServiceError):
    """
    Base exception for failures attributed to a single chain.

    Attributes:
        chain_key: Chain the failure belongs to (when known)
    """
    code = "provisioning_error"

    def __init__(self, message: str, chain_key: Optional[str] = None):
        super().__init__(message)
        self.chain_key = chain_key


class UnsupportedChainError(ProvisioningError):
    """Raised when a requested chain has no registry entry. Never retried."""
    code = "unsupported_chain"


class NotOwnerError(ProvisioningError):
    """
    Raised when the signing credential is not the factory owner.

    Retrying cannot change contract ownership, so this is never retried.
    """
    code = "not_owner"


class RpcError(ProvisioningError):
    """
    Raised for network/node-level failures.

    This includes scenarios such as:
    - Connection refused or DNS failure
    - Request timeout
    - Node 5xx / JSON-RPC error responses
    - Receipt polling exceeding its bound
    """
    code = "rpc_error"
    retryable = True


class EventNotFoundError(ProvisioningError):
    """
    Raised when a creation transaction was mined but no ``WalletCreated``
    event was emitted by the factory.

    Attributes:
        tx_hash: Hash of the mined transaction
    """
    code = "event_not_found"
    retryable = True

    def __init__(self, message: str, chain_key: Optional[str] = None, tx_hash: Optional[str] = None):
        super().__init__(message, chain_key=chain_key)
        self.tx_hash = tx_hash


class AttemptsExhaustedError(ProvisioningError):
    """
    Terminal error once every attempt for a chain has failed.

    Attributes:
        attempts: Number of attempts made
        last_error: Message of the final failure
    """
    code = "attempts_exhausted"

    def __init__(self, chain_key: str, attempts: int, last_error: str):
        super().__init__(
            f"{chain_key.upper()} wallet creation failed after {attempts} attempts: {last_error}",
            chain_key=chain_key,
        )
        self.attempts = attempts
        self.last_error = last_error


class StreamInterruptedError(WalletServiceError):
    """
    Raised by a streaming channel when its consumer has gone away.

    Writes after this point are lost; the producer keeps working.
    """
    code = "stream_interrupted"


class RecordStoreError(WalletServiceError):
    """
    Raised when the record store rejects or cannot serve a request.

    Attributes:
        status_code: HTTP status returned by the record service, if any
    """
    code = "record_store_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RecordNotFoundError(RecordStoreError):
    """Raised when a user or payment record does not exist."""
    code = "record_not_found"


class InvalidTransition(WalletServiceError):
    """
    Raised when the provisioning state machine receives an outcome that is
    not valid for its current phase.
    """
    code = "invalid_transition"
