"""
Sequential token distribution to a list of recipients
"""

import logging
from typing import Callable, Optional, Sequence

from ..errors import ChainConnectionError, EncodingError, RPCError, TransferError, UnconfirmedTransactionError
from ..models import DeployedContract, DistributionReport, TransferInstruction, TransferResult
from .abi_codec import decode_function_result, encode_function_call
from .transactions import GasPriceTooHighError, TransactionSender

logger = logging.getLogger('erc20_provisioner')

_SUBMIT_ERRORS = (RPCError, ChainConnectionError, GasPriceTooHighError)


class TokenDistributor:
    """Funds recipients one by one from the signer's token balance.

    Each transfer is confirmed before the next is built. The first failure
    stops the run; the report says how far it got.
    """

    def __init__(self, sender: TransactionSender):
        self.sender = sender
        self.client = sender.client

    def token_balance(self, contract: DeployedContract, owner: str) -> Optional[int]:
        """balanceOf(owner), or None when the read fails"""
        try:
            data = self.client.read_state(
                contract.address, encode_function_call(contract.abi, 'balanceOf', [owner])
            )
            return decode_function_result(contract.abi, 'balanceOf', data, arity=1)
        except (EncodingError, RPCError, ChainConnectionError) as e:
            logger.warning(f"Could not read token balance of {owner}: {e}")
            return None

    async def transfer(self, contract: DeployedContract, instruction: TransferInstruction) -> TransferResult:
        """Send one transfer and wait for it; raises TransferError on failure"""
        try:
            data = encode_function_call(contract.abi, 'transfer', [instruction.recipient, instruction.amount])
        except EncodingError as e:
            raise TransferError(f"Cannot encode transfer to {instruction.recipient}: {e}",
                                recipient=instruction.recipient, cause=e) from e

        try:
            sent = await self.sender.send(
                {'to': contract.address, 'data': data},
                description=f"Transfer to {instruction.recipient}",
            )
        except _SUBMIT_ERRORS as e:
            raise TransferError(f"Transfer to {instruction.recipient} failed: {e}",
                                recipient=instruction.recipient, cause=e) from e

        if not sent.succeeded:
            raise TransferError(f"Transfer to {instruction.recipient} reverted (tx {sent.tx_hash})",
                                recipient=instruction.recipient, tx_hash=sent.tx_hash)

        return TransferResult(
            instruction=instruction,
            tx_hash=sent.tx_hash,
            block_number=sent.receipt.get('blockNumber'),
            gas_used=sent.receipt.get('gasUsed'),
        )

    async def distribute(self, contract: DeployedContract, recipients: Sequence[str],
                         amount_per_recipient: int,
                         on_confirmed: Optional[Callable[[TransferResult], None]] = None) -> DistributionReport:
        report = DistributionReport(recipients=list(recipients), amount=amount_per_recipient)
        if not report.recipients:
            logger.info("No recipients, skipping distribution")
            return report

        signer = self.sender.address
        report.initial_balance = self.token_balance(contract, signer)
        logger.info(
            f"Distributing {amount_per_recipient} units to {len(report.recipients)} recipients "
            f"(signer balance: {report.initial_balance})"
        )

        for index, recipient in enumerate(report.recipients):
            instruction = TransferInstruction(recipient=recipient, amount=amount_per_recipient)
            try:
                result = await self.transfer(contract, instruction)
            except (TransferError, UnconfirmedTransactionError) as e:
                report.failed_index = index
                report.failed_recipient = recipient
                report.error = e
                logger.error(f"Distribution stopped at #{index} ({recipient}): {e}")
                break

            report.transfers.append(result)
            logger.info(f"[{index + 1}/{len(report.recipients)}] {recipient} funded in {result.tx_hash}")
            if on_confirmed is not None:
                on_confirmed(result)

        report.final_balance = self.token_balance(contract, signer)
        logger.info(f"Distribution finished: {report.summary()} (signer balance: {report.final_balance})")
        return report
