"""Shared fixtures: a known signer, the test ERC-20 artifact and a fake chain."""
from __future__ import annotations

import logging
from pathlib import Path

import pytest
from eth_utils import to_checksum_address

from provisioner.config import ProvisionConfig
from provisioner.models import TokenSpec
from provisioner.services import SignerIdentity, TransactionSender
from provisioner.services.abi_codec import load_artifact

from fake_chain import FakeChain

FIXTURES = Path(__file__).parent / "fixtures"
ABI_PATH = FIXTURES / "erc20.abi"
BIN_PATH = FIXTURES / "erc20.bin"

# well-known throwaway key, never funded on a real network
PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
SIGNER_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"

RECIPIENTS = [to_checksum_address("0x" + byte * 20) for byte in ("aa", "bb", "cc", "dd", "ee")]


@pytest.fixture(autouse=True)
def quiet_provisioner_logger():
    logger = logging.getLogger("erc20_provisioner")
    saved = list(logger.handlers)
    # a NullHandler keeps TokenProvisioner from installing console/file handlers
    logger.handlers = [logging.NullHandler()]
    yield
    logger.handlers = saved


@pytest.fixture
def artifact():
    return load_artifact(ABI_PATH, BIN_PATH)


@pytest.fixture
def identity():
    return SignerIdentity.from_private_key(PRIVATE_KEY)


@pytest.fixture
def chain(artifact):
    return FakeChain(artifact.bytecode)


@pytest.fixture
def sender(chain, identity):
    return TransactionSender(chain, identity, confirmation_timeout=2, poll_interval=0.001, gas_limit=3_000_000)


@pytest.fixture
def token_spec():
    return TokenSpec(name="Test", symbol="TST", decimals=18, total_supply=10**24)


@pytest.fixture
def make_config(tmp_path, token_spec):
    def _make(**overrides):
        values = dict(
            endpoint="http://localhost:8545",
            private_key=PRIVATE_KEY,
            token=token_spec,
            recipients=[],
            output_path=str(tmp_path / "data" / "erc20_address.txt"),
            abi_path=str(ABI_PATH),
            bytecode_path=str(BIN_PATH),
            journal_path=str(tmp_path / "deployments.db"),
            confirmation_timeout=2,
            poll_interval=0.001,
            log_dir=None,
        )
        values.update(overrides)
        return ProvisionConfig(**values)
    return _make
