import asyncio

import pytest

from provisioner.errors import (
    ChainConnectionError,
    ConfirmationTimeoutError,
    OperationCancelledError,
    TransferError,
    UnconfirmedTransactionError,
)
from provisioner.services import TokenDeployer, TokenDistributor, TransactionSender

from conftest import RECIPIENTS, SIGNER_ADDRESS
from fake_chain import FakeChain

AMOUNT = 1000 * 10**18


@pytest.fixture
def contract(sender, artifact, token_spec):
    return asyncio.run(TokenDeployer(sender).deploy_token(token_spec, artifact))


def distribute(sender, contract, recipients, amount=AMOUNT, **kwargs):
    return asyncio.run(TokenDistributor(sender).distribute(contract, recipients, amount, **kwargs))


def transfer_events(chain):
    return [event for event in chain.events if event[1] != "create"]


def test_transfers_confirmed_in_order(chain, sender, contract, token_spec):
    recipients = RECIPIENTS[:2]
    report = distribute(sender, contract, recipients)

    assert report.completed
    assert report.success_count == 2
    assert [t.recipient for t in report.transfers] == recipients
    # each transfer is confirmed before the next one is submitted
    assert transfer_events(chain) == [
        ("submit", recipients[0]), ("confirm", recipients[0]),
        ("submit", recipients[1]), ("confirm", recipients[1]),
    ]
    assert report.initial_balance == token_spec.total_supply
    assert report.final_balance == token_spec.total_supply - 2 * AMOUNT
    assert chain.balance_of(contract.address, SIGNER_ADDRESS) == report.final_balance
    for recipient in recipients:
        assert chain.balance_of(contract.address, recipient) == AMOUNT


def test_ordering_holds_with_slow_confirmations(chain, sender, contract):
    chain.confirm_after = 2
    report = distribute(sender, contract, RECIPIENTS[:3])
    assert report.completed
    kinds = [kind for kind, _ in transfer_events(chain)]
    assert kinds == ["submit", "confirm"] * 3


def test_nonces_are_sequential(chain, sender, contract):
    distribute(sender, contract, RECIPIENTS)
    # deployment used nonce 0, transfers 1..5
    assert chain.nonces[SIGNER_ADDRESS] == 1 + len(RECIPIENTS)


def test_empty_recipient_list_sends_nothing(chain, sender, contract):
    calls_before = chain.rpc_calls
    report = distribute(sender, contract, [])
    assert report.completed
    assert report.success_count == 0
    assert chain.rpc_calls == calls_before


def test_stops_at_first_revert(chain, sender, contract):
    chain.revert_for.add(RECIPIENTS[2])
    report = distribute(sender, contract, RECIPIENTS)

    assert not report.completed
    assert report.success_count == 2
    assert report.failed_index == 2
    assert report.failed_recipient == RECIPIENTS[2]
    assert isinstance(report.error, TransferError)
    assert report.error.tx_hash is not None
    assert report.remaining == RECIPIENTS[2:]
    submitted = [label for kind, label in transfer_events(chain) if kind == "submit"]
    assert submitted == RECIPIENTS[:3]


def test_submission_failure_stops_before_next_recipient(chain, sender, contract):
    chain.fail_submit_for.add(RECIPIENTS[1])
    report = distribute(sender, contract, RECIPIENTS[:3])

    assert report.success_count == 1
    assert report.failed_recipient == RECIPIENTS[1]
    assert isinstance(report.error, TransferError)
    assert "insufficient funds" in str(report.error)
    submitted = [label for kind, label in transfer_events(chain) if kind == "submit"]
    assert RECIPIENTS[2] not in submitted


def test_insufficient_token_balance_reverts(chain, sender, contract, token_spec):
    report = distribute(sender, contract, RECIPIENTS[:2], amount=token_spec.total_supply)
    assert report.success_count == 1
    assert report.failed_index == 1


def test_timeout_stops_distribution(chain, identity, contract):
    chain.stall_for.add(RECIPIENTS[0])
    sender = TransactionSender(chain, identity, confirmation_timeout=0.05, poll_interval=0.01, gas_limit=100_000)
    report = distribute(sender, contract, RECIPIENTS[:2])

    assert report.success_count == 0
    assert isinstance(report.error, ConfirmationTimeoutError)
    submitted = [label for kind, label in transfer_events(chain) if kind == "submit"]
    assert submitted == [RECIPIENTS[0]]


def test_cancellation_stops_distribution(chain, identity, contract):
    chain.stall_for.add(RECIPIENTS[1])

    async def scenario():
        cancel_event = asyncio.Event()
        sender = TransactionSender(chain, identity, confirmation_timeout=5, poll_interval=0.01,
                                   gas_limit=100_000, cancel_event=cancel_event)
        task = asyncio.ensure_future(TokenDistributor(sender).distribute(contract, RECIPIENTS[:3], AMOUNT))
        await asyncio.sleep(0.05)
        cancel_event.set()
        return await task

    report = asyncio.run(scenario())
    assert report.success_count == 1
    assert report.failed_recipient == RECIPIENTS[1]
    assert isinstance(report.error, OperationCancelledError)


def test_balance_read_failure_is_tolerated(chain, sender, contract):
    chain.fail_reads = True
    report = distribute(sender, contract, RECIPIENTS[:1])
    assert report.completed
    assert report.initial_balance is None
    assert report.final_balance is None


def test_on_confirmed_called_per_transfer(sender, contract):
    seen = []
    distribute(sender, contract, RECIPIENTS[:3], on_confirmed=lambda result: seen.append(result.recipient))
    assert seen == RECIPIENTS[:3]


def test_lost_receipt_keeps_tx_hash(chain, sender, contract):
    chain.fail_receipts_for.add(RECIPIENTS[0])
    report = distribute(sender, contract, RECIPIENTS[:2])

    assert report.success_count == 0
    assert report.outcome_unknown
    assert isinstance(report.error, UnconfirmedTransactionError)
    assert not isinstance(report.error, TransferError)
    assert report.pending_tx_hash in chain.pending
    assert "unconfirmed at #0" in report.summary()
    # the transfer went through even though its receipt was never seen
    assert chain.balance_of(contract.address, RECIPIENTS[0]) == AMOUNT
    submitted = [label for kind, label in transfer_events(chain) if kind == "submit"]
    assert submitted == [RECIPIENTS[0]]


def test_connection_drop_during_submission(chain, sender, contract):
    submit = chain.submit_transaction

    def accepted_then_dropped(raw_transaction):
        submit(raw_transaction)
        raise ChainConnectionError("connection reset by peer")

    chain.submit_transaction = accepted_then_dropped
    report = distribute(sender, contract, RECIPIENTS[:2])

    assert report.outcome_unknown
    assert report.failed_recipient == RECIPIENTS[0]
    assert report.pending_tx_hash in chain.pending
    assert report.error.nonce == 1


def test_timeout_is_outcome_unknown(chain, identity, contract):
    chain.stall_for.add(RECIPIENTS[0])
    sender = TransactionSender(chain, identity, confirmation_timeout=0.05, poll_interval=0.01, gas_limit=100_000)
    report = distribute(sender, contract, RECIPIENTS[:1])
    assert report.outcome_unknown
    assert report.pending_tx_hash in chain.pending


def test_revert_is_not_outcome_unknown(chain, sender, contract):
    chain.revert_for.add(RECIPIENTS[0])
    report = distribute(sender, contract, RECIPIENTS[:1])
    assert not report.outcome_unknown
    assert "failed at #0" in report.summary()


def test_eip1559_transfers(artifact, identity, token_spec):
    chain = FakeChain(artifact.bytecode, base_fee=10**9)
    sender = TransactionSender(chain, identity, poll_interval=0.001)
    contract = asyncio.run(TokenDeployer(sender).deploy_token(token_spec, artifact))
    report = distribute(sender, contract, RECIPIENTS[:2])

    assert report.completed
    assert chain.tx_types == [2, 2, 2]
    assert chain.balance_of(contract.address, RECIPIENTS[1]) == AMOUNT
