"""Data models for the WeChat Pay mini-program service."""

from .merchant import MerchantIdentity
from .signing import SigningContext
from .notification import (
    EncryptedBlob,
    FailureReason,
    NotificationEnvelope,
    NotificationResult,
    TradeState,
    VerificationCertificate,
    VerificationFailure,
)
from .payment import PaymentParams, PrepayOrder

__all__ = [
    'MerchantIdentity',
    'SigningContext',
    'EncryptedBlob',
    'FailureReason',
    'NotificationEnvelope',
    'NotificationResult',
    'TradeState',
    'VerificationCertificate',
    'VerificationFailure',
    'PaymentParams',
    'PrepayOrder'
]
