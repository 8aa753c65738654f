"""
Journal of deployments and transfers, used to resume partial distributions
"""

import logging
import sqlite3
from datetime import datetime
from typing import List, Optional, Set

from ..models import DeployedContract, TokenSpec, TransferResult

# Configure SQLite to handle datetime properly for Python 3.12+
sqlite3.register_adapter(datetime, lambda dt: dt.isoformat())
sqlite3.register_converter("timestamp", lambda b: datetime.fromisoformat(b.decode()))


class DeploymentJournal:
    """Handles all database operations for the provisioning runs"""

    def __init__(self, db_path: str = 'deployments.db'):
        """Initialize database connection"""
        self.db_path = db_path
        self.logger = logging.getLogger('erc20_provisioner')
        self._setup_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES)

    def _setup_database(self):
        """Create tables on first use"""
        with self._connect() as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS deployments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    token_name TEXT,
                    token_symbol TEXT,
                    decimals INTEGER,
                    total_supply TEXT,
                    deployer TEXT,
                    chain_id INTEGER,
                    tx_hash TEXT,
                    contract_address TEXT,
                    status TEXT DEFAULT 'pending',
                    error TEXT,
                    requested_at TIMESTAMP,
                    confirmed_at TIMESTAMP
                )
            ''')

            # amounts are TEXT, uint256 does not fit in SQLite integers
            conn.execute('''
                CREATE TABLE IF NOT EXISTS transfers (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    contract_address TEXT,
                    recipient TEXT,
                    amount TEXT,
                    tx_hash TEXT,
                    block_number INTEGER,
                    status TEXT,
                    error TEXT,
                    created_at TIMESTAMP
                )
            ''')

            conn.execute('''
                CREATE INDEX IF NOT EXISTS idx_transfers_contract
                ON transfers(contract_address, status)
            ''')

    def start_deployment(self, spec: TokenSpec, deployer: str, chain_id: Optional[int] = None) -> int:
        """Record a deployment before it is submitted; returns its row id"""
        with self._connect() as conn:
            cursor = conn.execute('''
                INSERT INTO deployments
                (token_name, token_symbol, decimals, total_supply, deployer, chain_id, status, requested_at)
                VALUES (?, ?, ?, ?, ?, ?, 'pending', ?)
            ''', (spec.name, spec.symbol, spec.decimals, str(spec.total_supply), deployer, chain_id, datetime.now()))
            return cursor.lastrowid

    def complete_deployment(self, deployment_id: int, contract: DeployedContract) -> None:
        with self._connect() as conn:
            conn.execute('''
                UPDATE deployments
                SET tx_hash=?, contract_address=?, status='success', confirmed_at=?
                WHERE id=?
            ''', (contract.tx_hash, contract.address, datetime.now(), deployment_id))

    def fail_deployment(self, deployment_id: int, error: str, tx_hash: Optional[str] = None,
                        contract_address: Optional[str] = None, status: str = 'failed') -> None:
        """Mark a deployment failed, or 'unconfirmed' when its transaction may still be mined"""
        with self._connect() as conn:
            conn.execute('''
                UPDATE deployments
                SET status=?, error=?, tx_hash=COALESCE(?, tx_hash), contract_address=COALESCE(?, contract_address)
                WHERE id=?
            ''', (status, error, tx_hash, contract_address, deployment_id))

    def record_transfer(self, contract_address: str, result: TransferResult) -> None:
        """Record a confirmed transfer"""
        with self._connect() as conn:
            conn.execute('''
                INSERT INTO transfers
                (contract_address, recipient, amount, tx_hash, block_number, status, created_at)
                VALUES (?, ?, ?, ?, ?, 'success', ?)
            ''', (contract_address, result.recipient, str(result.instruction.amount),
                  result.tx_hash, result.block_number, datetime.now()))

    def record_failed_transfer(self, contract_address: str, recipient: str, amount: int,
                               error: str, tx_hash: Optional[str] = None) -> None:
        with self._connect() as conn:
            conn.execute('''
                INSERT INTO transfers
                (contract_address, recipient, amount, tx_hash, status, error, created_at)
                VALUES (?, ?, ?, ?, 'failed', ?, ?)
            ''', (contract_address, recipient, str(amount), tx_hash, error, datetime.now()))

    def record_unconfirmed_transfer(self, contract_address: str, recipient: str, amount: int,
                                    tx_hash: str, error: str) -> None:
        """Record a transfer that was submitted but never seen confirmed"""
        with self._connect() as conn:
            conn.execute('''
                INSERT INTO transfers
                (contract_address, recipient, amount, tx_hash, status, error, created_at)
                VALUES (?, ?, ?, ?, 'unconfirmed', ?, ?)
            ''', (contract_address, recipient, str(amount), tx_hash, error, datetime.now()))

    def unconfirmed_transfers(self, contract_address: str) -> List[dict]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT * FROM transfers WHERE LOWER(contract_address) = LOWER(?) AND status = 'unconfirmed' ORDER BY id",
                (contract_address,)
            ).fetchall()
            return [dict(row) for row in rows]

    def resolve_transfer(self, transfer_id: int, status: str, block_number: Optional[int] = None) -> None:
        """Settle an unconfirmed transfer once its receipt is known"""
        with self._connect() as conn:
            conn.execute('''
                UPDATE transfers SET status=?, block_number=COALESCE(?, block_number)
                WHERE id=?
            ''', (status, block_number, transfer_id))

    def funded_recipients(self, contract_address: str) -> Set[str]:
        """Recipients with a confirmed transfer from ``contract_address``"""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT DISTINCT recipient FROM transfers WHERE LOWER(contract_address) = LOWER(?) AND status = 'success'",
                (contract_address,)
            )
            return {row[0] for row in cursor.fetchall()}

    def get_last_deployment(self) -> Optional[dict]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT * FROM deployments ORDER BY id DESC LIMIT 1"
            ).fetchone()
            return dict(row) if row else None

    def get_transfers(self, contract_address: str) -> List[dict]:
        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT * FROM transfers WHERE LOWER(contract_address) = LOWER(?) ORDER BY id",
                (contract_address,)
            ).fetchall()
            return [dict(row) for row in rows]
