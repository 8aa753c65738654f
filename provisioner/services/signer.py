"""
Transaction signing identity derived from a private key
"""

import re
from typing import Any, Dict, Union

from eth_account import Account
from eth_account.datastructures import SignedTransaction
from eth_account.signers.local import LocalAccount
from eth_utils.exceptions import ValidationError

from ..errors import InvalidKeyError

_HEX_KEY = re.compile(r'^(0x)?[0-9a-fA-F]{64}$')


class SignerIdentity:
    """Signs transactions for one account. Only the address is ever exposed."""

    def __init__(self, account: LocalAccount):
        self._account = account

    @classmethod
    def from_private_key(cls, key: Union[str, bytes]) -> "SignerIdentity":
        """Build an identity from a 32-byte key or its hex form.

        Raises InvalidKeyError for anything that is not a usable secp256k1
        key. The key itself is never included in the error.
        """
        if isinstance(key, str):
            key = key.strip()
            if not _HEX_KEY.match(key):
                raise InvalidKeyError("Private key must be 32 bytes of hex (64 hex digits, optional 0x prefix)")
        elif isinstance(key, (bytes, bytearray)):
            if len(key) != 32:
                raise InvalidKeyError(f"Private key must be 32 bytes, got {len(key)}")
            key = bytes(key)
        else:
            raise InvalidKeyError(f"Unsupported private key type: {type(key).__name__}")

        try:
            account = Account.from_key(key)
        except (ValueError, TypeError, ValidationError) as e:
            # out of curve range (zero or >= group order)
            raise InvalidKeyError("Private key is outside the secp256k1 range") from e
        return cls(account)

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, transaction: Dict[str, Any]) -> SignedTransaction:
        """Sign a fully populated transaction dict. No network access."""
        return self._account.sign_transaction(transaction)

    def __repr__(self) -> str:
        return f"SignerIdentity(address={self.address})"

    __str__ = __repr__
