"""
WeChat Pay exception hierarchy.

Verification failures of inbound notifications are not exceptions; see
models.notification.VerificationFailure.
"""

from typing import Any, Dict, Optional


class WeChatPayError(Exception):
    """Base exception for all WeChat Pay integration errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API error response format."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


class ConfigurationError(WeChatPayError):
    """
    Merchant key material is missing or unusable.

    Examples:
    - Private key file does not exist
    - Private key is not an RSA key in PEM format
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class GatewayRequestError(WeChatPayError):
    """
    A request to the WeChat Pay API did not succeed.

    Carries the gateway's own error code and message when the gateway
    returned one, otherwise the transport error text.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: str = "GATEWAY_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.status = status
        super().__init__(code, message, details)


class DecryptionError(WeChatPayError):
    """
    An AEAD envelope could not be opened.

    Examples:
    - Authentication tag mismatch (tampered ciphertext or associated data)
    - Ciphertext shorter than the tag, or not valid base64
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("DECRYPTION_FAILED", message, details)
