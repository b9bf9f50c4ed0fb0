"""
Platform Certificate Store.

Fetches, decrypts and caches the gateway's rotating platform
certificates, indexed by X.509 serial number.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

from cryptography import x509

from config import config
from exceptions import DecryptionError, GatewayRequestError
from models.notification import EncryptedBlob, VerificationCertificate
from .cipher import PayloadCipher
from .gateway_client import GatewayClient

logger = logging.getLogger(__name__)

CERTIFICATES_PATH = '/v3/certificates'


def certificate_serial(pem: str) -> str:
    """
    Extract the serial number of a PEM certificate.

    Returns:
        Upper-case hex serial, padded to whole bytes
    """
    certificate = x509.load_pem_x509_certificate(pem.encode('utf-8'))
    serial = format(certificate.serial_number, 'X')
    if len(serial) % 2:
        serial = '0' + serial
    return serial


class CertificateStore:
    """
    In-memory cache of platform certificates.

    Refresh protocol:
    - The whole cache shares one fetch time; once it is older than the
      TTL (or the cache is empty) the next lookup refetches every
      certificate.
    - A serial missing from a fresh cache triggers one refetch, at most
      once per `min_refresh_interval`.
    - Refreshes are single-flight: callers that queued behind a refresh
      reuse its outcome instead of fetching again, including its error
      when it failed. Lookups served from a fresh cache never wait on
      the lock.
    - Cache keys come from the decrypted certificates themselves, never
      from the gateway's listing metadata.
    """

    def __init__(
        self,
        client: GatewayClient,
        cipher: PayloadCipher,
        ttl: Optional[int] = None,
        min_refresh_interval: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the store.

        Args:
            client: Gateway client used for the certificate listing
            cipher: Cipher keyed with the APIv3 secret
            ttl: Cache lifetime in seconds
            min_refresh_interval: Minimum seconds between refreshes caused
                by an unknown serial number
            clock: Monotonic time source
        """
        self.client = client
        self.cipher = cipher
        self.ttl = ttl if ttl is not None else config.gateway.cert_cache_ttl
        self.min_refresh_interval = (
            min_refresh_interval if min_refresh_interval is not None
            else config.gateway.cert_min_refresh_interval
        )
        self._clock = clock
        self._certificates: Dict[str, VerificationCertificate] = {}
        self._fetched_at: Optional[float] = None
        self._attempts = 0
        self._last_error: Optional[Exception] = None
        self._refresh_count = 0
        self._lock = asyncio.Lock()

    def is_fresh(self) -> bool:
        """Check whether the cache can be served without a refresh."""
        if not self._certificates or self._fetched_at is None:
            return False
        return self._clock() - self._fetched_at < self.ttl

    async def get_public_key(self, serial_no: str) -> Optional[str]:
        """
        Get the platform certificate PEM for a serial number.

        Args:
            serial_no: Serial number from the `wechatpay-serial` header

        Returns:
            Certificate PEM, or None if the gateway does not advertise it

        Raises:
            GatewayRequestError: If a needed refresh could not fetch the list
            DecryptionError: If a fetched certificate failed to decrypt
        """
        serial_no = serial_no.upper()
        attempt = self._attempts

        if self.is_fresh():
            certificate = self._certificates.get(serial_no)
            if certificate:
                return certificate.public_key_pem
            if self._clock() - self._fetched_at < self.min_refresh_interval:
                logger.warning(f"Unknown platform certificate {serial_no}, refreshed too recently to retry")
                return None
            logger.info(f"Unknown platform certificate {serial_no}, refreshing")

        await self.refresh(attempt)

        certificate = self._certificates.get(serial_no)
        if certificate is None:
            logger.warning(f"Platform certificate {serial_no} not advertised by gateway")
            return None
        return certificate.public_key_pem

    async def refresh(self, attempt: Optional[int] = None) -> None:
        """
        Refetch all platform certificates.

        Args:
            attempt: Refresh attempt count the caller observed; if another
                refresh ran while the caller waited for the lock, its
                outcome is reused: the caller returns on success and gets
                the same error on failure

        Raises:
            GatewayRequestError: If the certificate list could not be fetched
            DecryptionError: If a fetched certificate failed to decrypt
        """
        async with self._lock:
            if attempt is not None and attempt != self._attempts:
                if self._last_error is not None:
                    raise self._last_error
                return

            self._attempts += 1
            try:
                await self._fetch()
            except Exception as e:
                self._last_error = e
                raise
            self._last_error = None

    async def _fetch(self) -> None:
        """Fetch, decrypt and index the certificate list, then swap it in."""
        self._refresh_count += 1
        logger.info("Fetching platform certificates")
        data = await self.client.get(CERTIFICATES_PATH)

        fetched_at = self._clock()
        certificates: Dict[str, VerificationCertificate] = {}
        for entry in data.get('data') or []:
            try:
                blob = EncryptedBlob.from_dict(entry['encrypt_certificate'])
            except (KeyError, TypeError, ValueError) as e:
                raise GatewayRequestError(f"Malformed certificate entry: {e}") from e

            pem = self.cipher.decrypt(blob)
            if not isinstance(pem, str):
                raise DecryptionError("Decrypted certificate is not PEM text")

            try:
                serial_no = certificate_serial(pem)
            except ValueError as e:
                raise DecryptionError(f"Decrypted certificate is not a valid X.509 PEM: {e}") from e

            certificates[serial_no] = VerificationCertificate(
                serial_no=serial_no,
                public_key_pem=pem,
                fetched_at=fetched_at
            )

        self._certificates = certificates
        self._fetched_at = fetched_at
        logger.info(f"Loaded {len(certificates)} platform certificate(s): {', '.join(certificates) or '-'}")

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "certificates": sorted(self._certificates),
            "fresh": self.is_fresh(),
            "age_seconds": (
                round(self._clock() - self._fetched_at, 1)
                if self._fetched_at is not None else None
            ),
            "ttl": self.ttl,
            "refresh_count": self._refresh_count
        }
