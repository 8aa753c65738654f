#!/usr/bin/env python3
"""
ERC-20 Provisioner - deploy a token and fund recipients

Deploys the ERC-20 contract found in erc20.abi / erc20.bin, writes its
address to /data/erc20_address.txt and optionally sends TRANSFER_AMOUNT
tokens to each recipient.

Usage:
    python deploy_erc20.py <providerURL> <privateKey> <tokenName> <tokenSymbol> \\
        <decimals> <totalSupply> [recipient1,recipient2,...]

Optional settings (environment or .env): ERC20_ABI_PATH, ERC20_BIN_PATH,
ADDRESS_OUTPUT_PATH, TRANSFER_AMOUNT, CONFIRMATION_TIMEOUT, POLL_INTERVAL,
GAS_LIMIT, MAX_PRIORITY_FEE_GWEI, MAX_GAS_PRICE_GWEI, JOURNAL_PATH,
TOKEN_ADDRESS (resume against an existing contract), LOG_DIR.
"""

import asyncio
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv

from provisioner import ProvisionConfig, ProvisioningError, TokenProvisioner
from provisioner.config import REQUIRED_ARGS, USAGE
from provisioner.provisioner import ProvisionResult

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def print_result(result: ProvisionResult) -> None:
    report = result.report
    print(f"\n🎉 Token contract: {result.contract.address}")
    if result.contract.tx_hash:
        print(f"   Transaction: {result.contract.tx_hash}")
    print(f"   Address file: {result.address_path}")

    if not report.recipients:
        print("   No recipients to fund")
        return

    print(f"   Funded {report.success_count}/{len(report.recipients)} recipients "
          f"with {report.amount} units each")
    for transfer in report.transfers:
        print(f"   ✅ {transfer.recipient}  {transfer.tx_hash}")
    if report.initial_balance is not None and report.final_balance is not None:
        print(f"   Signer balance: {report.initial_balance} -> {report.final_balance}")

    if report.outcome_unknown:
        print(f"\n⚠️  Transfer to {report.failed_recipient} was sent but not confirmed: {report.error}")
        print(f"   Transaction: {report.pending_tx_hash}")
        print(f"   A resume run (TOKEN_ADDRESS={result.contract.address}) checks it before sending again")
        print("   Remaining recipients:")
        print("   " + ",".join(report.remaining))
    elif not report.completed:
        print(f"\n❌ Distribution stopped at {report.failed_recipient}: {report.error}")
        print(f"   Remaining recipients (re-run with TOKEN_ADDRESS={result.contract.address} to resume):")
        print("   " + ",".join(report.remaining))


async def provision(config: ProvisionConfig) -> ProvisionResult:
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel_event.set)
        except (NotImplementedError, RuntimeError):
            # no loop signal handlers on this platform
            pass

    provisioner = TokenProvisioner(config)
    return await provisioner.run(cancel_event)


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv

    if len(argv) < REQUIRED_ARGS:
        print(USAGE, file=sys.stderr)
        return EXIT_USAGE

    load_dotenv()

    try:
        config = ProvisionConfig.from_args(argv)
    except ProvisioningError as e:
        print(f"❌ CONFIGURATION ERROR: {e}", file=sys.stderr)
        print(USAGE, file=sys.stderr)
        return EXIT_USAGE

    print("🚀 ERC-20 PROVISIONER")
    print("=" * 50)
    print(f"🔗 Endpoint: {config.endpoint}")
    print(f"🪙 Token: {config.token.name} ({config.token.symbol}), "
          f"decimals={config.token.decimals}, supply={config.token.total_supply}")
    print(f"👥 Recipients: {len(config.recipients)}")
    print("=" * 50)

    try:
        result = asyncio.run(provision(config))
    except ProvisioningError as e:
        print(f"\n❌ {e.stage.upper()} FAILED: {e}", file=sys.stderr)
        tx_hash = getattr(e, 'tx_hash', None)
        if tx_hash:
            print(f"   Transaction: {tx_hash}", file=sys.stderr)
        if e.contract_address:
            print(f"   Contract address: {e.contract_address}", file=sys.stderr)
            print(f"   Set TOKEN_ADDRESS={e.contract_address} to resume against this contract", file=sys.stderr)
        return EXIT_FAILED

    print_result(result)
    return EXIT_OK if result.completed else EXIT_FAILED


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
