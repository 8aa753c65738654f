"""
Run configuration.

Positional values come from the command line; optional settings come from
the environment (populated from ``.env`` by the CLI).
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import List, Mapping, Optional, Sequence

from eth_utils import is_address, to_checksum_address

from .errors import ConfigurationError
from .models import TokenSpec

USAGE = (
    "Usage: deploy-erc20 <providerURL> <privateKey> <tokenName> <tokenSymbol> "
    "<decimals> <totalSupply> [recipient1,recipient2,...]"
)

REQUIRED_ARGS = 6

DEFAULT_OUTPUT_PATH = '/data/erc20_address.txt'
DEFAULT_ABI_PATH = 'erc20.abi'
DEFAULT_BIN_PATH = 'erc20.bin'
DEFAULT_JOURNAL_PATH = 'deployments.db'
DEFAULT_TRANSFER_AMOUNT = '1000'


def parse_recipients(value: Optional[str]) -> List[str]:
    """Split a comma separated address list; entries are checksummed"""
    if not value:
        return []
    recipients = []
    for raw in value.split(','):
        entry = raw.strip()
        if not entry:
            continue
        if not is_address(entry):
            raise ConfigurationError(f"Invalid recipient address: {entry!r}")
        recipients.append(to_checksum_address(entry))
    return recipients


def _int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    value = env.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}", cause=e) from e


def _float(env: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    value = env.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}", cause=e) from e


@dataclass
class ProvisionConfig:
    """Everything a provisioning run needs"""
    endpoint: str
    private_key: str = field(repr=False)
    token: TokenSpec
    recipients: List[str] = field(default_factory=list)
    transfer_amount: str = DEFAULT_TRANSFER_AMOUNT  # whole tokens
    output_path: str = DEFAULT_OUTPUT_PATH
    abi_path: str = DEFAULT_ABI_PATH
    bytecode_path: str = DEFAULT_BIN_PATH
    journal_path: Optional[str] = DEFAULT_JOURNAL_PATH
    confirmation_timeout: float = 300
    poll_interval: float = 1.0
    request_timeout: float = 30
    gas_limit: Optional[int] = None
    max_priority_fee_gwei: float = 1.0
    max_gas_price_gwei: Optional[float] = None
    token_address: Optional[str] = None  # resume against an existing contract
    log_dir: Optional[str] = 'logs'

    def __post_init__(self):
        if not self.endpoint:
            raise ConfigurationError("Endpoint URL is required")
        if not self.private_key:
            raise ConfigurationError("Private key is required")
        if self.confirmation_timeout <= 0:
            raise ConfigurationError("CONFIRMATION_TIMEOUT must be positive")
        if self.poll_interval <= 0:
            raise ConfigurationError("POLL_INTERVAL must be positive")
        if self.token_address is not None and not is_address(self.token_address):
            raise ConfigurationError(f"Invalid TOKEN_ADDRESS: {self.token_address!r}")
        self.amount_per_recipient()

    def amount_per_recipient(self) -> int:
        """Transfer amount in the token's smallest unit"""
        try:
            whole = Decimal(str(self.transfer_amount).strip())
        except InvalidOperation as e:
            raise ConfigurationError(f"TRANSFER_AMOUNT must be a number, got {self.transfer_amount!r}", cause=e) from e
        if not whole.is_finite():
            raise ConfigurationError(f"TRANSFER_AMOUNT must be finite, got {self.transfer_amount!r}")
        scaled = whole.scaleb(self.token.decimals)
        if scaled < 0 or scaled != scaled.to_integral_value():
            raise ConfigurationError(
                f"TRANSFER_AMOUNT {self.transfer_amount} is not a whole number of units at {self.token.decimals} decimals"
            )
        return int(scaled)

    @classmethod
    def from_args(cls, argv: Sequence[str], env: Optional[Mapping[str, str]] = None) -> "ProvisionConfig":
        """Build the config from CLI positionals plus environment settings"""
        env = os.environ if env is None else env
        if len(argv) < REQUIRED_ARGS:
            raise ConfigurationError(f"Expected at least {REQUIRED_ARGS} arguments, got {len(argv)}")

        endpoint, private_key, name, symbol, decimals_raw, supply_raw = argv[:REQUIRED_ARGS]
        try:
            decimals = int(decimals_raw)
        except ValueError as e:
            raise ConfigurationError(f"decimals must be an integer, got {decimals_raw!r}", cause=e) from e
        try:
            total_supply = int(supply_raw.strip())
        except ValueError as e:
            raise ConfigurationError(f"totalSupply must be an integer string, got {supply_raw!r}", cause=e) from e
        try:
            token = TokenSpec(name=name, symbol=symbol, decimals=decimals, total_supply=total_supply)
        except ValueError as e:
            raise ConfigurationError(str(e), cause=e) from e

        recipients = parse_recipients(argv[REQUIRED_ARGS] if len(argv) > REQUIRED_ARGS else None)

        journal_path = env.get('JOURNAL_PATH', DEFAULT_JOURNAL_PATH)
        log_dir = env.get('LOG_DIR', 'logs')

        return cls(
            endpoint=endpoint,
            private_key=private_key,
            token=token,
            recipients=recipients,
            transfer_amount=env.get('TRANSFER_AMOUNT', DEFAULT_TRANSFER_AMOUNT),
            output_path=env.get('ADDRESS_OUTPUT_PATH', DEFAULT_OUTPUT_PATH),
            abi_path=env.get('ERC20_ABI_PATH', DEFAULT_ABI_PATH),
            bytecode_path=env.get('ERC20_BIN_PATH', DEFAULT_BIN_PATH),
            journal_path=journal_path or None,
            confirmation_timeout=_float(env, 'CONFIRMATION_TIMEOUT', 300),
            poll_interval=_float(env, 'POLL_INTERVAL', 1.0),
            request_timeout=_float(env, 'RPC_REQUEST_TIMEOUT', 30),
            gas_limit=_int(env, 'GAS_LIMIT', None),
            max_priority_fee_gwei=_float(env, 'MAX_PRIORITY_FEE_GWEI', 1.0),
            max_gas_price_gwei=_float(env, 'MAX_GAS_PRICE_GWEI', None),
            token_address=env.get('TOKEN_ADDRESS') or None,
            log_dir=log_dir or None,
        )
