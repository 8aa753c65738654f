"""
ERC-20 provisioner: deploy a token contract, record its address and fund
a list of recipients.
"""

from .config import ProvisionConfig
from .errors import (
    ChainConnectionError,
    ConfigurationError,
    ConfirmationTimeoutError,
    DeploymentError,
    EncodingError,
    InvalidKeyError,
    OperationCancelledError,
    PersistenceError,
    ProvisioningError,
    RPCError,
    TransferError,
    UnconfirmedTransactionError,
)
from .provisioner import ProvisionResult, TokenProvisioner

__version__ = "0.1.0"

__all__ = [
    "ChainConnectionError",
    "ConfigurationError",
    "ConfirmationTimeoutError",
    "DeploymentError",
    "EncodingError",
    "InvalidKeyError",
    "OperationCancelledError",
    "PersistenceError",
    "ProvisionConfig",
    "ProvisionResult",
    "ProvisioningError",
    "RPCError",
    "TokenProvisioner",
    "TransferError",
    "UnconfirmedTransactionError",
]
