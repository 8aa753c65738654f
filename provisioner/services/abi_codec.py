"""
ABI helpers: artifact loading, argument encoding and result decoding.

Only the parts of the ABI the provisioner needs are handled here: the
constructor signature and plain function calls such as ``transfer`` and
``balanceOf``.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from eth_abi import decode, encode, is_encodable
from eth_abi.exceptions import ABITypeError, DecodingError, ParseError
from eth_abi.exceptions import EncodingError as ABIEncodingError
from eth_utils import function_abi_to_4byte_selector, is_address, to_checksum_address
from eth_utils.abi import collapse_if_tuple

from ..errors import ConfigurationError, EncodingError
from ..models import ContractArtifact

logger = logging.getLogger('erc20_provisioner')

_ENCODE_ERRORS = (ABIEncodingError, ABITypeError, ParseError, ValueError, TypeError, OverflowError)


def parse_bytecode(text: Union[str, bytes]) -> bytes:
    """Decode hex bytecode as produced by solc (``0x`` prefix optional)"""
    if isinstance(text, bytes):
        text = text.decode('utf-8')
    cleaned = "".join(text.split())
    if cleaned[:2].lower() == '0x':
        cleaned = cleaned[2:]
    if not cleaned:
        raise EncodingError("Bytecode is empty")
    try:
        return bytes.fromhex(cleaned)
    except ValueError as e:
        raise EncodingError(f"Bytecode is not valid hex: {e}", cause=e) from e


def _read_text(path: Union[str, Path], what: str) -> str:
    try:
        return Path(path).read_text(encoding='utf-8')
    except OSError as e:
        raise ConfigurationError(f"Cannot read {what} file {path}: {e}", cause=e) from e


def load_artifact(abi_path: Union[str, Path],
                  bytecode_path: Optional[Union[str, Path]] = None,
                  require_bytecode: bool = True) -> ContractArtifact:
    """Load a contract ABI and its creation bytecode.

    The ABI file may be a bare JSON list or a compiler artifact object with an
    ``abi`` key. Bytecode is read from ``bytecode_path`` when it exists,
    otherwise from the artifact's ``bytecode`` entry.
    Attaching to an existing contract only needs the ABI, so
    ``require_bytecode=False`` allows the bytecode to be missing.
    """
    raw = _read_text(abi_path, "ABI")
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"ABI file {abi_path} is not valid JSON: {e}", cause=e) from e

    embedded_bytecode = None
    if isinstance(parsed, dict):
        abi = parsed.get('abi')
        embedded_bytecode = parsed.get('bytecode')
        # Foundry nests the hex under "object"
        if isinstance(embedded_bytecode, dict):
            embedded_bytecode = embedded_bytecode.get('object')
    else:
        abi = parsed

    if not isinstance(abi, list):
        raise ConfigurationError(f"ABI file {abi_path} does not contain an ABI list")

    if bytecode_path is not None and Path(bytecode_path).exists():
        bytecode = parse_bytecode(_read_text(bytecode_path, "bytecode"))
    elif embedded_bytecode:
        bytecode = parse_bytecode(embedded_bytecode)
    elif not require_bytecode:
        bytecode = b""
    else:
        raise ConfigurationError(
            f"No bytecode found: {bytecode_path} does not exist and {abi_path} has no bytecode entry"
        )

    logger.debug(f"Loaded artifact: {len(abi)} ABI entries, {len(bytecode)} bytes of bytecode")
    return ContractArtifact(abi=abi, bytecode=bytecode)


def constructor_inputs(abi: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Return the constructor's input descriptors (empty when there is none)"""
    for entry in abi:
        if entry.get('type') == 'constructor':
            return list(entry.get('inputs', []))
    return []


def _find_function(abi: Sequence[Dict[str, Any]], name: str, arity: int) -> Dict[str, Any]:
    candidates = [
        entry for entry in abi
        if entry.get('type', 'function') == 'function' and entry.get('name') == name
    ]
    if not candidates:
        raise EncodingError(f"ABI has no function named {name!r}")
    for entry in candidates:
        if len(entry.get('inputs', [])) == arity:
            return entry
    raise EncodingError(
        f"{name}() takes {len(candidates[0].get('inputs', []))} arguments, got {arity}"
    )


def _coerce(abi_type: str, value: Any) -> Any:
    """Light type coercion for values that arrive as strings"""
    if isinstance(value, str):
        if abi_type.startswith(('uint', 'int')) and '[' not in abi_type:
            text = value.strip()
            try:
                return int(text, 16) if text[:2].lower() == '0x' else int(text)
            except ValueError:
                return value
        if abi_type == 'address' and is_address(value):
            return to_checksum_address(value)
        if abi_type == 'bool' and value.lower() in ('true', 'false'):
            return value.lower() == 'true'
    return value


def encode_arguments(inputs: Sequence[Dict[str, Any]], args: Sequence[Any], context: str) -> bytes:
    """ABI-encode ``args`` against a list of input descriptors"""
    if len(inputs) != len(args):
        raise EncodingError(f"{context} expects {len(inputs)} arguments, got {len(args)}")

    types = [collapse_if_tuple(item) for item in inputs]
    values = [_coerce(abi_type, value) for abi_type, value in zip(types, args)]

    try:
        for position, (abi_type, value) in enumerate(zip(types, values)):
            if not is_encodable(abi_type, value):
                label = inputs[position].get('name') or f"#{position}"
                raise EncodingError(f"{context}: argument {label} ({abi_type}) cannot encode {value!r}")
        return encode(types, values)
    except EncodingError:
        raise
    except _ENCODE_ERRORS as e:
        raise EncodingError(f"{context}: {e}", cause=e) from e


def encode_constructor_args(abi: Sequence[Dict[str, Any]], args: Sequence[Any]) -> bytes:
    inputs = constructor_inputs(abi)
    if not inputs and args:
        raise EncodingError(f"ABI has no constructor but {len(args)} arguments were given")
    return encode_arguments(inputs, args, "constructor")


def encode_function_call(abi: Sequence[Dict[str, Any]], name: str, args: Sequence[Any]) -> bytes:
    """Build call data (selector + arguments) for a contract function"""
    fn_abi = _find_function(abi, name, len(args))
    selector = function_abi_to_4byte_selector(fn_abi)
    return selector + encode_arguments(fn_abi.get('inputs', []), args, f"{name}()")


def decode_function_result(abi: Sequence[Dict[str, Any]], name: str, data: bytes,
                           arity: int = 0) -> Any:
    """Decode the return data of a call; single outputs are unwrapped"""
    fn_abi = _find_function(abi, name, arity)
    types = [collapse_if_tuple(item) for item in fn_abi.get('outputs', [])]
    try:
        values = decode(types, bytes(data))
    except (DecodingError, ABITypeError, ParseError, ValueError) as e:
        raise EncodingError(f"Cannot decode {name}() result: {e}", cause=e) from e
    return values[0] if len(values) == 1 else values
