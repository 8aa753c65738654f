"""
JSON-RPC chain client built on Web3.py
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import TransactionNotFound, Web3Exception

from ..errors import ChainConnectionError, RPCError

logger = logging.getLogger('erc20_provisioner')


class ChainClient:
    """Thin wrapper around a Web3 instance for one RPC endpoint.

    Transport failures raise ChainConnectionError and node-side rejections
    raise RPCError. Nothing here retries; the caller decides.
    """

    def __init__(self, w3: Web3, endpoint: str = ""):
        self.w3 = w3
        self.endpoint = endpoint
        self._chain_id: Optional[int] = None

    @classmethod
    def connect(cls, endpoint_url: str, request_timeout: float = 30) -> "ChainClient":
        """Connect to an HTTP(S) JSON-RPC endpoint"""
        if not endpoint_url or not endpoint_url.strip():
            raise ChainConnectionError("RPC endpoint URL is empty")

        parsed = urlparse(endpoint_url.strip())
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ChainConnectionError(f"Malformed RPC endpoint URL: {endpoint_url!r}")

        w3 = Web3(Web3.HTTPProvider(endpoint_url.strip(), request_kwargs={"timeout": request_timeout}))
        if not w3.is_connected():
            raise ChainConnectionError(f"Failed to connect to RPC endpoint {endpoint_url}")

        client = cls(w3, endpoint_url.strip())
        logger.info(f"Connected to {client.endpoint} (chain ID: {client.chain_id})")
        return client

    def _call(self, description: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except requests.exceptions.RequestException as e:
            raise ChainConnectionError(f"{description} failed: {e}", cause=e) from e
        except (Web3Exception, ValueError) as e:
            raise RPCError(f"{description} rejected by node: {e}", cause=e) from e

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self._call("eth_chainId", lambda: self.w3.eth.chain_id)
        return self._chain_id

    def get_nonce(self, address: str) -> int:
        """Next nonce for ``address``, counting pending transactions"""
        return self._call("eth_getTransactionCount", self.w3.eth.get_transaction_count, address, 'pending')

    def get_balance(self, address: str) -> int:
        return self._call("eth_getBalance", self.w3.eth.get_balance, address)

    def get_code(self, address: str) -> bytes:
        return bytes(self._call("eth_getCode", self.w3.eth.get_code, address))

    def get_fee_params(self, max_priority_fee_gwei: float = 1.0) -> Dict[str, Any]:
        """Fee fields for a new transaction.

        EIP-1559 when the latest block has a base fee, legacy gasPrice
        otherwise (dev chains without London).
        """
        latest_block = self._call("eth_getBlockByNumber", self.w3.eth.get_block, 'latest')
        base_fee = latest_block.get('baseFeePerGas')
        if base_fee is not None:
            max_priority_fee = Web3.to_wei(max_priority_fee_gwei, 'gwei')
            # allows for a 1.2x base fee increase before inclusion
            max_fee_per_gas = int(base_fee * 1.2) + max_priority_fee
            return {
                'maxFeePerGas': max_fee_per_gas,
                'maxPriorityFeePerGas': max_priority_fee,
                'type': 2,
            }
        return {'gasPrice': self._call("eth_gasPrice", lambda: self.w3.eth.gas_price)}

    def estimate_gas(self, transaction: Dict[str, Any]) -> int:
        return self._call("eth_estimateGas", self.w3.eth.estimate_gas, transaction)

    def submit_transaction(self, raw_transaction: bytes) -> HexBytes:
        """Broadcast a signed transaction; returns its hash"""
        return HexBytes(self._call("eth_sendRawTransaction", self.w3.eth.send_raw_transaction, raw_transaction))

    def get_receipt(self, tx_hash) -> Optional[Dict[str, Any]]:
        """Receipt for ``tx_hash`` or None while it is still pending"""
        try:
            return self._call("eth_getTransactionReceipt", self.w3.eth.get_transaction_receipt, tx_hash)
        except RPCError as e:
            if isinstance(e.cause, TransactionNotFound):
                return None
            raise

    def read_state(self, address: str, data: bytes) -> bytes:
        """Read-only contract call against the latest block"""
        return bytes(self._call("eth_call", self.w3.eth.call, {'to': address, 'data': HexBytes(data)}))
