"""
Merchant identity model.

Holds the merchant's WeChat Pay account identifiers and signing key.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from config import MerchantConfig
from exceptions import ConfigurationError


@dataclass(frozen=True)
class MerchantIdentity:
    """
    Immutable merchant identity, loaded once at startup.

    Attributes:
        appid: Mini-program app ID
        mchid: WeChat Pay merchant number
        cert_serial_no: Serial number of the merchant API certificate
        private_key: RSA private key matching the merchant API certificate
        apiv3_secret: 32-byte APIv3 key used to open gateway envelopes
    """

    appid: str
    mchid: str
    cert_serial_no: str
    private_key: rsa.RSAPrivateKey = field(repr=False)
    apiv3_secret: str = field(repr=False)

    def __post_init__(self):
        """Validate key material."""
        if not isinstance(self.private_key, rsa.RSAPrivateKey):
            raise ConfigurationError("Merchant private key must be an RSA key")
        if len(self.apiv3_secret.encode('utf-8')) != 32:
            raise ConfigurationError("APIv3 secret must be exactly 32 bytes")

    @property
    def apiv3_key(self) -> bytes:
        """APIv3 secret as an AES-256 key."""
        return self.apiv3_secret.encode('utf-8')

    @classmethod
    def from_config(cls, merchant_config: MerchantConfig) -> 'MerchantIdentity':
        """
        Create a MerchantIdentity from configuration, reading the key file.

        Args:
            merchant_config: Merchant section of the service config

        Returns:
            MerchantIdentity instance

        Raises:
            ConfigurationError: If the key file cannot be read or parsed
        """
        path = Path(merchant_config.private_key_file)
        try:
            pem = path.read_bytes()
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read merchant private key file: {path}",
                details={"error": str(e)}
            ) from e

        return cls(
            appid=merchant_config.appid,
            mchid=merchant_config.mchid,
            cert_serial_no=merchant_config.cert_serial_no,
            private_key=load_private_key(pem),
            apiv3_secret=merchant_config.apiv3_secret
        )


def load_private_key(pem: bytes, password: Optional[bytes] = None) -> rsa.RSAPrivateKey:
    """
    Parse a PEM encoded RSA private key.

    Raises:
        ConfigurationError: If the data is not a usable RSA private key
    """
    try:
        key = serialization.load_pem_private_key(pem, password=password)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(
            "Merchant private key is not a valid PEM private key",
            details={"error": str(e)}
        ) from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise ConfigurationError("Merchant private key must be an RSA key")
    return key
