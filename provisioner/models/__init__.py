from .token import ContractArtifact, DeployedContract, TokenSpec
from .distribution import DistributionReport, TransferInstruction, TransferResult

__all__ = [
    "ContractArtifact",
    "DeployedContract",
    "DistributionReport",
    "TokenSpec",
    "TransferInstruction",
    "TransferResult",
]
