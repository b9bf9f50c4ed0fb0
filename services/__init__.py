"""Services module for the WeChat Pay mini-program service."""

from .signer import Signer
from .cipher import PayloadCipher
from .gateway_client import GatewayClient
from .certificate_store import CertificateStore
from .notification_verifier import NotificationVerifier
from .payment_service import PaymentRequestBuilder, PaymentService

__all__ = [
    'Signer',
    'PayloadCipher',
    'GatewayClient',
    'CertificateStore',
    'NotificationVerifier',
    'PaymentRequestBuilder',
    'PaymentService'
]
