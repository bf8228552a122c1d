"""
Easebuzz request and callback signatures.

Both are SHA-512 hex digests over pipe-joined fields. The outbound request
hash runs key to salt; the callback ("reverse") hash runs salt to key over
the fields the gateway sends back. Must only ever run server-side: the salt
is an input here and is never returned or logged.
"""

import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass

# Ten empty udf1..udf10 slots: eleven separators
_UDF_GAP = "|" * 11


@dataclass(frozen=True)
class PaymentFields:
    """The signed subset of a payment request or callback."""
    txnid: str
    amount: str
    productinfo: str
    firstname: str
    email: str


def _sha512(value: str) -> str:
    return hashlib.sha512(value.encode("utf-8")).hexdigest()


def payment_hash(key: str, salt: str, fields: PaymentFields) -> str:
    """``key|txnid|amount|productinfo|firstname|email|||||||||||salt``"""
    return _sha512(
        f"{key}|{fields.txnid}|{fields.amount}|{fields.productinfo}|"
        f"{fields.firstname}|{fields.email}{_UDF_GAP}{salt}"
    )


def reverse_hash(key: str, salt: str, status: str, fields: PaymentFields) -> str:
    """``salt|status|||||||||||email|firstname|productinfo|amount|txnid|key``"""
    return _sha512(
        f"{salt}|{status}{_UDF_GAP}{fields.email}|{fields.firstname}|"
        f"{fields.productinfo}|{fields.amount}|{fields.txnid}|{key}"
    )


def signatures_match(expected: str, received: str) -> bool:
    """Constant-time comparison of two hex digests."""
    if not received:
        return False
    return hmac.compare_digest(expected.lower(), received.strip().lower())


def generate_txn_id() -> str:
    """``TXN_<epoch ms>_<6 upper hex>``, random part from a CSPRNG."""
    return f"TXN_{int(time.time() * 1000)}_{secrets.token_hex(3).upper()}"
