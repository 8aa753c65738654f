"""
Token and contract models for deployments
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class TokenSpec:
    """Constructor parameters for an ERC-20 token"""
    name: str
    symbol: str
    decimals: int
    total_supply: int  # passed to the constructor as-is

    def __post_init__(self):
        if not isinstance(self.decimals, int) or self.decimals < 0:
            raise ValueError(f"decimals must be a non-negative integer, got {self.decimals!r}")
        if not isinstance(self.total_supply, int) or self.total_supply < 0:
            raise ValueError(f"total_supply must be a non-negative integer, got {self.total_supply!r}")


@dataclass(frozen=True)
class ContractArtifact:
    """Compiled contract interface and creation bytecode"""
    abi: List[Dict[str, Any]]
    bytecode: bytes


@dataclass(frozen=True)
class DeployedContract:
    """Handle to a contract whose creation has been confirmed"""
    address: str  # checksummed
    abi: List[Dict[str, Any]] = field(repr=False)
    tx_hash: Optional[str] = None  # None when attached to an existing contract
    block_number: Optional[int] = None
    deployer: Optional[str] = None
