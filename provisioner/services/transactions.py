"""
Sequential transaction submission with confirmation waits.

A single ``TransactionSender`` is shared by the deployer and the
distributor. It holds a lock from nonce lookup until the transaction is
confirmed, so a signer never has more than one transaction in flight and
nonces are always issued in order.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from web3 import Web3

from ..errors import (
    ChainConnectionError,
    ConfirmationTimeoutError,
    OperationCancelledError,
    ProvisioningError,
    RPCError,
    UnconfirmedTransactionError,
)
from .chain_client import ChainClient
from .signer import SignerIdentity

logger = logging.getLogger('erc20_provisioner')

GAS_ESTIMATE_BUFFER = 1.2


class GasPriceTooHighError(ProvisioningError):
    """Effective gas price is above the configured ceiling"""

    stage = "fees"


@dataclass
class SentTransaction:
    """A submitted transaction and, once confirmed, its receipt"""
    tx_hash: str
    nonce: int
    sender: str
    receipt: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.receipt is not None and self.receipt.get('status') == 1


class TransactionSender:
    """Fills, signs, submits and confirms transactions one at a time"""

    def __init__(self, client: ChainClient, identity: SignerIdentity,
                 confirmation_timeout: float = 300, poll_interval: float = 1.0,
                 gas_limit: Optional[int] = None, max_priority_fee_gwei: float = 1.0,
                 max_gas_price_gwei: Optional[float] = None,
                 cancel_event: Optional[asyncio.Event] = None):
        self.client = client
        self.identity = identity
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self.gas_limit = gas_limit
        self.max_priority_fee_gwei = max_priority_fee_gwei
        self.max_gas_price_gwei = max_gas_price_gwei
        self.cancel_event = cancel_event
        self._lock = asyncio.Lock()

    @property
    def address(self) -> str:
        return self.identity.address

    def _check_gas_ceiling(self, fees: Dict[str, Any]) -> None:
        if self.max_gas_price_gwei is None:
            return
        price = fees.get('maxFeePerGas', fees.get('gasPrice', 0))
        ceiling = Web3.to_wei(self.max_gas_price_gwei, 'gwei')
        if price > ceiling:
            raise GasPriceTooHighError(
                f"Gas price too high: {price / 1e9:.1f} gwei (max: {self.max_gas_price_gwei})"
            )

    def build(self, intent: Dict[str, Any], nonce: int) -> Dict[str, Any]:
        """Complete a transaction intent (to/data/value) with sender, nonce, fees and gas"""
        tx = {
            'from': self.address,
            'value': 0,
            'nonce': nonce,
            'chainId': self.client.chain_id,
        }
        tx.update(intent)

        fees = self.client.get_fee_params(self.max_priority_fee_gwei)
        self._check_gas_ceiling(fees)
        tx.update(fees)

        if self.gas_limit is not None:
            tx['gas'] = self.gas_limit
        else:
            estimate_input = {k: v for k, v in tx.items() if k not in ('nonce', 'chainId', 'type')}
            tx['gas'] = int(self.client.estimate_gas(estimate_input) * GAS_ESTIMATE_BUFFER)
        return tx

    async def send(self, intent: Dict[str, Any], description: str = "transaction") -> SentTransaction:
        """Submit ``intent`` and block until it is confirmed.

        Returns the confirmed SentTransaction (check ``succeeded`` for
        reverts). Once the signed transaction has been handed to the node,
        every failure is an UnconfirmedTransactionError carrying its hash:
        the transaction may still be mined.
        """
        async with self._lock:
            nonce = self.client.get_nonce(self.address)
            tx = self.build(intent, nonce)
            signed = self.identity.sign(tx)
            sent = SentTransaction(tx_hash=Web3.to_hex(signed.hash), nonce=nonce, sender=self.address)

            try:
                self.client.submit_transaction(signed.raw_transaction)
            except ChainConnectionError as e:
                # the node may have accepted it before the connection dropped
                raise UnconfirmedTransactionError(
                    f"{description} {sent.tx_hash}: submission outcome unknown ({e})",
                    tx_hash=sent.tx_hash, nonce=nonce, cause=e,
                ) from e
            logger.info(f"{description} sent: {sent.tx_hash} (nonce {nonce}, gas {tx['gas']:,})")

            try:
                sent.receipt = await self.wait_for_confirmation(sent.tx_hash)
            except UnconfirmedTransactionError as e:
                e.nonce = nonce
                raise
            except (ChainConnectionError, RPCError) as e:
                raise UnconfirmedTransactionError(
                    f"Lost track of {description} {sent.tx_hash}: {e}",
                    tx_hash=sent.tx_hash, nonce=nonce, cause=e,
                ) from e
            return sent

    async def wait_for_confirmation(self, tx_hash: str, timeout: Optional[float] = None,
                                    cancel_event: Optional[asyncio.Event] = None) -> Dict[str, Any]:
        """Poll for a receipt until it arrives, the timeout passes, or the wait is cancelled"""
        timeout = self.confirmation_timeout if timeout is None else timeout
        cancel_event = cancel_event or self.cancel_event
        deadline = time.monotonic() + timeout

        logger.debug(f"Waiting up to {timeout}s for {tx_hash}")
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelledError(f"Cancelled while waiting for {tx_hash}", tx_hash=tx_hash)

            receipt = self.client.get_receipt(tx_hash)
            if receipt is not None:
                logger.debug(f"{tx_hash} included in block {receipt.get('blockNumber')}")
                return receipt

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ConfirmationTimeoutError(
                    f"{tx_hash} not confirmed after {timeout}s", tx_hash=tx_hash
                )

            delay = min(self.poll_interval, remaining)
            if cancel_event is None:
                await asyncio.sleep(delay)
            else:
                # wake early when cancelled
                try:
                    await asyncio.wait_for(cancel_event.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
