from .address_store import persist_address, read_address
from .chain_client import ChainClient
from .distributor import TokenDistributor
from .signer import SignerIdentity
from .token_deployer import TokenDeployer, calculate_create_address, token_constructor_args
from .transactions import TransactionSender

__all__ = [
    "ChainClient",
    "SignerIdentity",
    "TokenDeployer",
    "TokenDistributor",
    "TransactionSender",
    "calculate_create_address",
    "persist_address",
    "read_address",
    "token_constructor_args",
]
