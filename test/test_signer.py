import pytest
from eth_account import Account

from provisioner.errors import InvalidKeyError
from provisioner.services import SignerIdentity

from conftest import PRIVATE_KEY, RECIPIENTS, SIGNER_ADDRESS


def test_address_derived_from_hex_key():
    assert SignerIdentity.from_private_key(PRIVATE_KEY).address == SIGNER_ADDRESS


def test_prefix_and_whitespace_are_optional():
    identity = SignerIdentity.from_private_key("  " + PRIVATE_KEY[2:] + "\n")
    assert identity.address == SIGNER_ADDRESS


def test_raw_bytes_key():
    identity = SignerIdentity.from_private_key(bytes.fromhex(PRIVATE_KEY[2:]))
    assert identity.address == SIGNER_ADDRESS


@pytest.mark.parametrize("bad_key", [
    "",
    "0x1234",
    "not-a-key",
    "0x" + "zz" * 32,
    PRIVATE_KEY + "00",
    b"\x01" * 31,
    12345,
])
def test_malformed_keys_rejected(bad_key):
    with pytest.raises(InvalidKeyError):
        SignerIdentity.from_private_key(bad_key)


def test_key_above_curve_order_rejected():
    with pytest.raises(InvalidKeyError) as excinfo:
        SignerIdentity.from_private_key("0x" + "ff" * 32)
    assert "ff" * 32 not in str(excinfo.value)


def test_repr_never_shows_key():
    identity = SignerIdentity.from_private_key(PRIVATE_KEY)
    for text in (repr(identity), str(identity)):
        assert PRIVATE_KEY[2:] not in text
        assert SIGNER_ADDRESS in text


def test_sign_produces_transaction_from_signer():
    identity = SignerIdentity.from_private_key(PRIVATE_KEY)
    tx = {
        "from": identity.address,
        "nonce": 0,
        "gas": 21000,
        "gasPrice": 10**9,
        "to": RECIPIENTS[0],
        "value": 1,
        "chainId": 1337,
    }
    signed = identity.sign(tx)
    assert Account.recover_transaction(signed.raw_transaction) == SIGNER_ADDRESS
