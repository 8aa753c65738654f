"""
Transfer and distribution report models
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..errors import UnconfirmedTransactionError


@dataclass(frozen=True)
class TransferInstruction:
    """A single token transfer to one recipient"""
    recipient: str
    amount: int  # smallest unit


@dataclass(frozen=True)
class TransferResult:
    """A confirmed transfer"""
    instruction: TransferInstruction
    tx_hash: str
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    @property
    def recipient(self) -> str:
        return self.instruction.recipient


@dataclass
class DistributionReport:
    """Outcome of a distribution run

    ``transfers`` holds the confirmed transfers in submission order. When a
    transfer fails the run stops and ``failed_index``/``failed_recipient``/
    ``error`` describe the failure; nothing after it was submitted.
    """
    recipients: List[str]
    amount: int
    transfers: List[TransferResult] = field(default_factory=list)
    failed_index: Optional[int] = None
    failed_recipient: Optional[str] = None
    error: Optional[BaseException] = None
    initial_balance: Optional[int] = None
    final_balance: Optional[int] = None

    @property
    def success_count(self) -> int:
        return len(self.transfers)

    @property
    def completed(self) -> bool:
        return self.error is None and self.success_count == len(self.recipients)

    @property
    def remaining(self) -> List[str]:
        """Recipients that still need funding, in their original order"""
        return self.recipients[self.success_count:]

    @property
    def outcome_unknown(self) -> bool:
        """The failing transfer was submitted but its receipt was never seen"""
        return isinstance(self.error, UnconfirmedTransactionError)

    @property
    def pending_tx_hash(self) -> Optional[str]:
        return getattr(self.error, 'tx_hash', None)

    def summary(self) -> str:
        if self.completed:
            return f"funded {self.success_count}/{len(self.recipients)} recipients"
        state = "unconfirmed" if self.outcome_unknown else "failed"
        return (
            f"funded {self.success_count}/{len(self.recipients)} recipients; "
            f"{state} at #{self.failed_index} ({self.failed_recipient}): {self.error}"
        )
