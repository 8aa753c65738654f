"""
Deploy-then-fund orchestration for one provisioning run
"""

import asyncio
import logging
import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from web3 import Web3

from .config import ProvisionConfig
from .database import DeploymentJournal
from .errors import PersistenceError, ProvisioningError, UnconfirmedTransactionError
from .models import DeployedContract, DistributionReport, TransferResult
from .services import (
    ChainClient,
    SignerIdentity,
    TokenDeployer,
    TokenDistributor,
    TransactionSender,
    persist_address,
)
from .services.abi_codec import load_artifact


@dataclass
class ProvisionResult:
    """What a run produced"""
    contract: DeployedContract
    address_path: Path
    report: DistributionReport
    resumed: bool = False

    @property
    def completed(self) -> bool:
        return self.report.completed


class TokenProvisioner:
    """Deploys a token, records its address and funds the recipients.

    The signer identity is derived before anything touches the network, so
    a bad key fails without an RPC call. Only one transaction is ever in
    flight: deployment and every transfer go through the same
    TransactionSender.
    """

    def __init__(self, config: ProvisionConfig, client: Optional[ChainClient] = None):
        self.config = config
        self.client = client
        self._setup_logging()

    def _setup_logging(self):
        """Setup logging"""
        self.logger = logging.getLogger('erc20_provisioner')
        self.logger.setLevel(logging.DEBUG)

        # handlers are shared by every provisioner in the process
        if self.logger.handlers:
            return

        formatter = logging.Formatter('%(asctime)s | %(levelname)s | %(message)s')

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if self.config.log_dir:
            os.makedirs(self.config.log_dir, exist_ok=True)
            file_handler = logging.FileHandler(os.path.join(self.config.log_dir, 'provisioner.log'), encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def _open_journal(self) -> Optional[DeploymentJournal]:
        if not self.config.journal_path:
            return None
        try:
            return DeploymentJournal(self.config.journal_path)
        except sqlite3.Error as e:
            self.logger.warning(f"Deployment journal unavailable ({self.config.journal_path}): {e}")
            return None

    def _journal(self, journal: Optional[DeploymentJournal], method: str, *args):
        """Journal writes are bookkeeping; a failure is logged and the run goes on"""
        if journal is None:
            return None
        try:
            return getattr(journal, method)(*args)
        except sqlite3.Error as e:
            self.logger.warning(f"Journal {method} failed: {e}")
            return None

    async def run(self, cancel_event: Optional[asyncio.Event] = None) -> ProvisionResult:
        config = self.config

        identity = SignerIdentity.from_private_key(config.private_key)
        self.logger.info(f"Signer address: {identity.address}")

        amount = config.amount_per_recipient()
        resume = config.token_address is not None
        artifact = load_artifact(config.abi_path, config.bytecode_path, require_bytecode=not resume)

        if self.client is None:
            self.client = ChainClient.connect(config.endpoint, config.request_timeout)

        balance = self.client.get_balance(identity.address)
        self.logger.info(f"Signer balance: {Web3.from_wei(balance, 'ether')} ETH")

        sender = TransactionSender(
            self.client,
            identity,
            confirmation_timeout=config.confirmation_timeout,
            poll_interval=config.poll_interval,
            gas_limit=config.gas_limit,
            max_priority_fee_gwei=config.max_priority_fee_gwei,
            max_gas_price_gwei=config.max_gas_price_gwei,
            cancel_event=cancel_event,
        )
        deployer = TokenDeployer(sender)
        journal = self._open_journal()

        recipients: List[str] = list(config.recipients)
        if resume:
            contract = deployer.attach(config.token_address, artifact.abi)
            self.logger.info(f"Resuming with existing contract {contract.address}")
            await self._settle_unconfirmed(journal, sender, contract)
            funded = self._journal(journal, 'funded_recipients', contract.address) or set()
            skipped = [r for r in recipients if r in funded]
            if skipped:
                self.logger.info(f"Skipping {len(skipped)} recipients already funded: {', '.join(skipped)}")
            recipients = [r for r in recipients if r not in funded]
        else:
            deployment_id = self._journal(journal, 'start_deployment', config.token, identity.address, self.client.chain_id)
            try:
                contract = await deployer.deploy_token(config.token, artifact)
            except UnconfirmedTransactionError as e:
                if deployment_id is not None:
                    self._journal(journal, 'fail_deployment', deployment_id, str(e), e.tx_hash,
                                  e.contract_address, 'unconfirmed')
                raise
            except ProvisioningError as e:
                if deployment_id is not None:
                    self._journal(journal, 'fail_deployment', deployment_id, str(e), getattr(e, 'tx_hash', None))
                raise
            if deployment_id is not None:
                self._journal(journal, 'complete_deployment', deployment_id, contract)

        try:
            address_path = persist_address(contract.address, config.output_path)
        except PersistenceError as e:
            e.contract_address = contract.address
            raise

        def on_confirmed(result: TransferResult):
            self._journal(journal, 'record_transfer', contract.address, result)

        distributor = TokenDistributor(sender)
        report = await distributor.distribute(contract, recipients, amount, on_confirmed=on_confirmed)
        if report.outcome_unknown:
            self._journal(
                journal, 'record_unconfirmed_transfer', contract.address, report.failed_recipient,
                amount, report.pending_tx_hash, str(report.error),
            )
        elif report.error is not None:
            self._journal(
                journal, 'record_failed_transfer', contract.address, report.failed_recipient,
                amount, str(report.error), report.pending_tx_hash,
            )

        return ProvisionResult(contract=contract, address_path=address_path, report=report, resumed=resume)

    async def _settle_unconfirmed(self, journal: Optional[DeploymentJournal], sender: TransactionSender,
                                  contract: DeployedContract) -> None:
        """Resolve transfers an earlier run submitted but never saw confirmed.

        A recipient is only funded again once its earlier transaction is known
        to have reverted. One that is still pending raises, with its hash.
        """
        for row in self._journal(journal, 'unconfirmed_transfers', contract.address) or []:
            self.logger.info(f"Checking earlier transfer to {row['recipient']}: {row['tx_hash']}")
            receipt = await sender.wait_for_confirmation(row['tx_hash'])
            status = 'success' if receipt.get('status') == 1 else 'failed'
            self._journal(journal, 'resolve_transfer', row['id'], status, receipt.get('blockNumber'))
            self.logger.info(f"Earlier transfer to {row['recipient']} {'confirmed' if status == 'success' else 'reverted'}")
