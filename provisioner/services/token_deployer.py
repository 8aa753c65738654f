"""
ERC-20 contract deployment
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import rlp
from eth_hash.auto import keccak
from eth_utils import is_address, to_bytes, to_checksum_address

from ..errors import ChainConnectionError, DeploymentError, EncodingError, RPCError, UnconfirmedTransactionError
from ..models import ContractArtifact, DeployedContract, TokenSpec
from .abi_codec import constructor_inputs, decode_function_result, encode_constructor_args, encode_function_call
from .transactions import GasPriceTooHighError, TransactionSender

logger = logging.getLogger('erc20_provisioner')

# Constructor order of the bundled standard token:
# constructor(uint256 _initialAmount, string _tokenName, uint8 _decimalUnits, string _tokenSymbol)
DEFAULT_CONSTRUCTOR_ORDER = ('total_supply', 'name', 'decimals', 'symbol')

READBACK_FUNCTIONS = ('name', 'symbol', 'decimals', 'totalSupply')

_SUBMIT_ERRORS = (RPCError, ChainConnectionError, GasPriceTooHighError)


def calculate_create_address(sender: str, nonce: int) -> str:
    """Address of a contract created by ``sender`` at ``nonce``"""
    # CREATE formula: keccak256(rlp([sender, nonce]))[12:]
    encoded = rlp.encode([to_bytes(hexstr=sender), nonce])
    return to_checksum_address(keccak(encoded)[-20:])


def _match_field(input_name: str) -> Optional[str]:
    lowered = input_name.lower()
    if 'symbol' in lowered:
        return 'symbol'
    if 'decimal' in lowered:
        return 'decimals'
    if 'supply' in lowered or 'amount' in lowered or 'initial' in lowered:
        return 'total_supply'
    if 'name' in lowered:
        return 'name'
    return None


def token_constructor_args(spec: TokenSpec, abi: Sequence[Dict[str, Any]]) -> List[Any]:
    """Order the token fields to fit the ABI's constructor.

    Inputs are matched by name; when that is ambiguous the default
    (total_supply, name, decimals, symbol) order is used.
    """
    inputs = constructor_inputs(abi)
    fields = [_match_field(item.get('name', '')) for item in inputs]
    if len(fields) == len(DEFAULT_CONSTRUCTOR_ORDER) and sorted(filter(None, fields)) == sorted(DEFAULT_CONSTRUCTOR_ORDER):
        order = fields
    else:
        order = list(DEFAULT_CONSTRUCTOR_ORDER)
        logger.debug(f"Constructor inputs {[i.get('name') for i in inputs]} not matched by name, using default order")
    return [getattr(spec, name) for name in order]


class TokenDeployer:
    """Deploys a contract and hands back a confirmed handle"""

    def __init__(self, sender: TransactionSender):
        self.sender = sender
        self.client = sender.client

    async def deploy(self, artifact: ContractArtifact, constructor_args: Sequence[Any]) -> DeployedContract:
        """Create the contract and wait for it to be confirmed.

        Never returns for an unconfirmed transaction: either the receipt is in
        and code exists at the new address, or an error is raised.
        """
        encoded_args = encode_constructor_args(artifact.abi, constructor_args)
        intent = {'data': artifact.bytecode + encoded_args}

        try:
            sent = await self.sender.send(intent, description="Contract creation")
        except _SUBMIT_ERRORS as e:
            raise DeploymentError(f"Contract creation failed: {e}", cause=e) from e
        except UnconfirmedTransactionError as e:
            # the creation may still be mined at the nonce-derived address
            if e.nonce is not None:
                e.contract_address = calculate_create_address(self.sender.address, e.nonce)
            raise

        receipt = sent.receipt
        if not sent.succeeded:
            raise DeploymentError(
                f"Contract creation reverted (tx {sent.tx_hash})", tx_hash=sent.tx_hash
            )

        derived_address = calculate_create_address(sent.sender, sent.nonce)
        receipt_address = receipt.get('contractAddress')
        if receipt_address and is_address(receipt_address):
            address = to_checksum_address(receipt_address)
            if address != derived_address:
                logger.warning(f"Receipt address {address} differs from derived address {derived_address}")
        else:
            address = derived_address

        contract = DeployedContract(
            address=address,
            abi=artifact.abi,
            tx_hash=sent.tx_hash,
            block_number=receipt.get('blockNumber'),
            deployer=sent.sender,
        )
        self.verify_code(contract)
        self.read_back(contract)

        logger.info(f"Contract deployed at {address} (block {contract.block_number}, gas used {receipt.get('gasUsed')})")
        return contract

    async def deploy_token(self, spec: TokenSpec, artifact: ContractArtifact) -> DeployedContract:
        logger.info(
            f"Deploying {spec.name} ({spec.symbol}), decimals={spec.decimals}, "
            f"supply={spec.total_supply} from {self.sender.address}"
        )
        return await self.deploy(artifact, token_constructor_args(spec, artifact.abi))

    def attach(self, address: str, abi: List[Dict[str, Any]]) -> DeployedContract:
        """Handle for an already deployed contract (resume runs)"""
        if not is_address(address):
            raise DeploymentError(f"Invalid contract address: {address!r}")
        contract = DeployedContract(address=to_checksum_address(address), abi=abi)
        self.verify_code(contract)
        self.read_back(contract)
        return contract

    def verify_code(self, contract: DeployedContract) -> None:
        try:
            code = self.client.get_code(contract.address)
        except _SUBMIT_ERRORS as e:
            raise DeploymentError(f"Could not read code at {contract.address}: {e}",
                                  tx_hash=contract.tx_hash, cause=e) from e
        if not code:
            raise DeploymentError(f"No contract code at {contract.address}", tx_hash=contract.tx_hash)

    def read_back(self, contract: DeployedContract) -> Dict[str, Any]:
        """Read token metadata for the log; failures are logged, not raised"""
        values = {}
        for fn_name in READBACK_FUNCTIONS:
            if not any(e.get('type', 'function') == 'function' and e.get('name') == fn_name for e in contract.abi):
                continue
            try:
                data = self.client.read_state(contract.address, encode_function_call(contract.abi, fn_name, []))
                values[fn_name] = decode_function_result(contract.abi, fn_name, data)
            except (EncodingError, RPCError, ChainConnectionError) as e:
                logger.warning(f"Could not read {fn_name}() from {contract.address}: {e}")
        if values:
            logger.info("On-chain state: " + ", ".join(f"{k}={v}" for k, v in values.items()))
        return values
