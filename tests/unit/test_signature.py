"""Unit tests for gateway request and callback signatures."""

import hashlib
import re

from confportal.engines.payments.signature import (
    PaymentFields,
    generate_txn_id,
    payment_hash,
    reverse_hash,
    signatures_match,
)

FIELDS = PaymentFields(
    txnid="TXN_1767225600000_A1B2C3",
    amount="250.00",
    productinfo="Conference Fee - Student",
    firstname="Asha",
    email="asha@example.com",
)


class TestPaymentHash:

    def test_request_hash_layout(self):
        raw = (
            "KEY|TXN_1767225600000_A1B2C3|250.00|Conference Fee - Student|"
            "Asha|asha@example.com|||||||||||SALT"
        )
        assert payment_hash("KEY", "SALT", FIELDS) == hashlib.sha512(raw.encode()).hexdigest()

    def test_reverse_hash_layout(self):
        raw = (
            "SALT|success|||||||||||asha@example.com|Asha|Conference Fee - Student|"
            "250.00|TXN_1767225600000_A1B2C3|KEY"
        )
        assert reverse_hash("KEY", "SALT", "success", FIELDS) == hashlib.sha512(raw.encode()).hexdigest()

    def test_status_is_signed(self):
        assert reverse_hash("KEY", "SALT", "success", FIELDS) != reverse_hash(
            "KEY", "SALT", "failure", FIELDS
        )

    def test_amount_is_signed(self):
        tampered = PaymentFields(
            txnid=FIELDS.txnid,
            amount="1.00",
            productinfo=FIELDS.productinfo,
            firstname=FIELDS.firstname,
            email=FIELDS.email,
        )
        assert reverse_hash("KEY", "SALT", "success", FIELDS) != reverse_hash(
            "KEY", "SALT", "success", tampered
        )


class TestSignaturesMatch:

    def test_identical(self):
        digest = reverse_hash("KEY", "SALT", "success", FIELDS)
        assert signatures_match(digest, digest) is True

    def test_case_and_whitespace_insensitive(self):
        digest = reverse_hash("KEY", "SALT", "success", FIELDS)
        assert signatures_match(digest, f"  {digest.upper()} ") is True

    def test_empty_never_matches(self):
        digest = reverse_hash("KEY", "SALT", "success", FIELDS)
        assert signatures_match(digest, "") is False

    def test_wrong_salt(self):
        expected = reverse_hash("KEY", "SALT", "success", FIELDS)
        forged = reverse_hash("KEY", "guessed", "success", FIELDS)
        assert signatures_match(expected, forged) is False


class TestTxnId:

    def test_format(self):
        assert re.fullmatch(r"TXN_\d{13}_[0-9A-F]{6}", generate_txn_id())

    def test_unique(self):
        assert len({generate_txn_id() for _ in range(200)}) == 200
