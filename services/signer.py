"""
Request Signer.

Produces RSA-SHA256 signatures and the WECHATPAY2-SHA256-RSA2048
Authorization header for outbound API calls, and verifies gateway
signatures with a platform certificate.
"""

import base64
import binascii
import logging
from typing import Optional, Union

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from models.merchant import MerchantIdentity
from models.signing import SigningContext

logger = logging.getLogger(__name__)

AUTH_SCHEME = 'WECHATPAY2-SHA256-RSA2048'


class Signer:
    """
    Signs content on behalf of a merchant.

    The same RSA primitive backs both the request Authorization header
    and the mini-program `paySign`; only the canonical string differs.
    """

    def __init__(self, merchant: MerchantIdentity):
        """
        Initialize the signer.

        Args:
            merchant: Merchant identity holding the private key
        """
        self.merchant = merchant

    def sign(self, message: Union[str, bytes]) -> str:
        """
        Sign a message with SHA256withRSA (PKCS#1 v1.5).

        Args:
            message: Content to sign; str is encoded as UTF-8

        Returns:
            Base64-encoded signature
        """
        if isinstance(message, str):
            message = message.encode('utf-8')
        signature = self.merchant.private_key.sign(
            message,
            padding.PKCS1v15(),
            hashes.SHA256()
        )
        return base64.b64encode(signature).decode('ascii')

    def sign_context(self, context: SigningContext) -> str:
        """Sign the canonical string of a request."""
        return self.sign(context.canonical_string())

    def authorization_header(self, context: SigningContext) -> str:
        """
        Build the Authorization header value for a request.

        The field set and order are fixed by the gateway's parser.
        """
        signature = self.sign_context(context)
        return (
            f'{AUTH_SCHEME} '
            f'mchid="{self.merchant.mchid}",'
            f'nonce_str="{context.nonce}",'
            f'timestamp="{context.timestamp}",'
            f'serial_no="{self.merchant.cert_serial_no}",'
            f'signature="{signature}"'
        )

    def build_authorization(
        self,
        method: str,
        url: str,
        body: str = '',
        timestamp: Optional[int] = None,
        nonce: Optional[str] = None
    ) -> str:
        """
        Build the Authorization header value for a method, URL and body.

        Args:
            method: HTTP method
            url: Request URL; only path and query are signed
            body: Request body exactly as sent ('' for GET)
            timestamp: Override the current time (seconds)
            nonce: Override the generated nonce

        Returns:
            Authorization header value
        """
        context = SigningContext.create(
            method=method,
            url=url,
            body=body,
            timestamp=timestamp,
            nonce=nonce
        )
        return self.authorization_header(context)


def load_public_key(pem: Union[str, bytes]) -> rsa.RSAPublicKey:
    """
    Load an RSA public key from a PEM certificate or public key.

    Raises:
        ValueError: If the PEM holds neither
    """
    if isinstance(pem, str):
        pem = pem.encode('utf-8')

    if b'BEGIN CERTIFICATE' in pem:
        key = x509.load_pem_x509_certificate(pem).public_key()
    else:
        key = serialization.load_pem_public_key(pem)

    if not isinstance(key, rsa.RSAPublicKey):
        raise ValueError("Platform key is not an RSA key")
    return key


def verify_signature(
    message: Union[str, bytes],
    signature: str,
    public_key: Union[rsa.RSAPublicKey, str, bytes]
) -> bool:
    """
    Verify a base64 SHA256withRSA signature.

    Args:
        message: Signed content; str is encoded as UTF-8
        signature: Base64-encoded signature
        public_key: RSA public key, or its PEM (certificate or SPKI)

    Returns:
        True if the signature is valid
    """
    if isinstance(message, str):
        message = message.encode('utf-8')

    try:
        if not isinstance(public_key, rsa.RSAPublicKey):
            public_key = load_public_key(public_key)
        public_key.verify(
            base64.b64decode(signature, validate=True),
            message,
            padding.PKCS1v15(),
            hashes.SHA256()
        )
        return True
    except InvalidSignature:
        return False
    except (ValueError, binascii.Error) as e:
        logger.warning(f"Cannot verify signature: {e}")
        return False
