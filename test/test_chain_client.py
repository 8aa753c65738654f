from unittest.mock import MagicMock

import pytest
import requests
from hexbytes import HexBytes
from web3.exceptions import TransactionNotFound

from provisioner.errors import ChainConnectionError, RPCError
from provisioner.services import ChainClient


@pytest.fixture
def w3():
    mock = MagicMock()
    mock.eth.chain_id = 1337
    return mock


@pytest.mark.parametrize("url", ["", "   ", "localhost:8545", "ftp://node:8545", "http://"])
def test_malformed_endpoint(url):
    with pytest.raises(ChainConnectionError):
        ChainClient.connect(url)


def test_unreachable_endpoint():
    with pytest.raises(ChainConnectionError):
        ChainClient.connect("http://127.0.0.1:1", request_timeout=1)


def test_chain_id_is_cached(w3):
    client = ChainClient(w3)
    assert client.chain_id == 1337
    w3.eth.chain_id = 1
    assert client.chain_id == 1337


def test_eip1559_fees(w3):
    w3.eth.get_block.return_value = {"baseFeePerGas": 10**9}
    fees = ChainClient(w3).get_fee_params(max_priority_fee_gwei=1)
    assert fees == {"maxFeePerGas": 2_200_000_000, "maxPriorityFeePerGas": 10**9, "type": 2}


def test_legacy_fees_without_base_fee(w3):
    w3.eth.get_block.return_value = {"number": 5}
    w3.eth.gas_price = 7
    assert ChainClient(w3).get_fee_params() == {"gasPrice": 7}


def test_nonce_counts_pending(w3):
    w3.eth.get_transaction_count.return_value = 9
    assert ChainClient(w3).get_nonce("0xabc") == 9
    w3.eth.get_transaction_count.assert_called_once_with("0xabc", "pending")


def test_pending_receipt_is_none(w3):
    w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("not found")
    assert ChainClient(w3).get_receipt("0x01") is None


def test_receipt_returned(w3):
    w3.eth.get_transaction_receipt.return_value = {"status": 1}
    assert ChainClient(w3).get_receipt("0x01") == {"status": 1}


def test_node_rejection_is_rpc_error(w3):
    w3.eth.send_raw_transaction.side_effect = ValueError({"code": -32000, "message": "nonce too low"})
    with pytest.raises(RPCError) as excinfo:
        ChainClient(w3).submit_transaction(b"\x01")
    assert "nonce too low" in str(excinfo.value)


def test_transport_failure_is_connection_error(w3):
    w3.eth.send_raw_transaction.side_effect = requests.exceptions.ConnectionError("refused")
    with pytest.raises(ChainConnectionError):
        ChainClient(w3).submit_transaction(b"\x01")


def test_submit_returns_hash(w3):
    w3.eth.send_raw_transaction.return_value = HexBytes("0x" + "ab" * 32)
    assert ChainClient(w3).submit_transaction(b"\x01") == HexBytes("0x" + "ab" * 32)


def test_read_state(w3):
    w3.eth.call.return_value = HexBytes("0x" + "00" * 31 + "05")
    data = ChainClient(w3).read_state("0xabc", b"\x70\xa0\x82\x31")
    assert data[-1] == 5
    call_args = w3.eth.call.call_args[0][0]
    assert call_args["to"] == "0xabc"


def test_native_balance(w3):
    w3.eth.get_balance.return_value = 5 * 10**18
    assert ChainClient(w3).get_balance("0xabc") == 5 * 10**18
    w3.eth.get_balance.assert_called_once_with("0xabc")
