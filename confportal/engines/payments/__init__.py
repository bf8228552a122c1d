"""
Payments Engine - fee calculation, gateway initiation and callback verification.
"""

from confportal.engines.payments.signature import (
    PaymentFields,
    generate_txn_id,
    payment_hash,
    reverse_hash,
    signatures_match,
)
from confportal.engines.payments.gateway import (
    EasebuzzGateway,
    GatewaySession,
    PaymentGateway,
)
from confportal.engines.payments.session_manager import (
    AttendeeStatusView,
    PaymentInitiation,
    PaymentSessionManager,
    PaymentStatusView,
)
from confportal.engines.payments.callback_verifier import (
    CallbackOutcome,
    CallbackPayload,
    PaymentCallbackVerifier,
)

__all__ = [
    "PaymentFields",
    "generate_txn_id",
    "payment_hash",
    "reverse_hash",
    "signatures_match",
    "EasebuzzGateway",
    "GatewaySession",
    "PaymentGateway",
    "AttendeeStatusView",
    "PaymentInitiation",
    "PaymentSessionManager",
    "PaymentStatusView",
    "CallbackOutcome",
    "CallbackPayload",
    "PaymentCallbackVerifier",
]
