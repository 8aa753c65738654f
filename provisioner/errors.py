"""
Error types raised while provisioning a token.

Every error carries a ``stage`` label so the CLI can tell the operator
which step of the run failed.
"""

from typing import Optional


class ProvisioningError(Exception):
    """Base class for all provisioning failures"""

    stage = "provisioning"
    # set once a contract exists (or is expected) at a known address
    contract_address: Optional[str] = None

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ConfigurationError(ProvisioningError, ValueError):
    """Invalid or missing run configuration"""

    stage = "configuration"


class ChainConnectionError(ProvisioningError, ConnectionError):
    """RPC endpoint is malformed or unreachable"""

    stage = "connection"


class RPCError(ProvisioningError):
    """The node rejected a JSON-RPC call"""

    stage = "rpc"


class InvalidKeyError(ProvisioningError, ValueError):
    """Private key is not a valid secp256k1 key"""

    stage = "signer"


class EncodingError(ProvisioningError, ValueError):
    """Arguments do not match the ABI signature"""

    stage = "encoding"


class DeploymentError(ProvisioningError):
    """Contract creation failed to submit, was reverted, or left no code"""

    stage = "deployment"

    def __init__(self, message: str, tx_hash: Optional[str] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.tx_hash = tx_hash


class TransferError(ProvisioningError):
    """A token transfer failed to submit or was reverted"""

    stage = "distribution"

    def __init__(self, message: str, recipient: Optional[str] = None,
                 tx_hash: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.recipient = recipient
        self.tx_hash = tx_hash


class PersistenceError(ProvisioningError, OSError):
    """Deployed address could not be written"""

    stage = "persistence"


class UnconfirmedTransactionError(ProvisioningError):
    """A transaction was handed to the node but its outcome is unknown.

    Raised when the connection fails during or after submission. ``tx_hash``
    is always set; the transaction may still be mined.
    """

    stage = "confirmation"

    def __init__(self, message: str, tx_hash: Optional[str] = None, nonce: Optional[int] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(message, cause)
        self.tx_hash = tx_hash
        self.nonce = nonce


class ConfirmationTimeoutError(UnconfirmedTransactionError, TimeoutError):
    """Transaction was not confirmed within the allowed time"""


class OperationCancelledError(UnconfirmedTransactionError):
    """Confirmation wait was cancelled by the operator"""
