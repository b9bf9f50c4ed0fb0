"""
Notification Verifier.

Authenticates payment notifications posted by the gateway and decrypts
their resource.
"""

import json
import logging
from typing import Any, Callable, Generic, Mapping, Optional, Union

from exceptions import DecryptionError, GatewayRequestError
from models.notification import (
    AttachT,
    EncryptedBlob,
    FailureReason,
    NotificationEnvelope,
    NotificationResult,
    VerificationFailure,
)
from .certificate_store import CertificateStore
from .cipher import PayloadCipher
from .signer import verify_signature

logger = logging.getLogger(__name__)


class NotificationVerifier(Generic[AttachT]):
    """
    Verifies inbound notifications.

    `verify` never raises for untrusted input: every rejection comes back
    as a VerificationFailure the HTTP layer can turn into a 4xx/5xx.
    Duplicate deliveries are not detected here; the business layer keys
    on `transaction_id` / `out_trade_no`.
    """

    def __init__(
        self,
        certificates: CertificateStore,
        cipher: PayloadCipher,
        attach_parser: Optional[Callable[[Any], AttachT]] = None
    ):
        """
        Initialize the verifier.

        Args:
            certificates: Platform certificate store
            cipher: Cipher keyed with the APIv3 secret
            attach_parser: Converts the decoded attach of successful
                payments into the business type
        """
        self.certificates = certificates
        self.cipher = cipher
        self.attach_parser = attach_parser

    async def verify(
        self,
        headers: Mapping[str, str],
        raw_body: Union[bytes, str]
    ) -> Union[NotificationResult[AttachT], VerificationFailure]:
        """
        Verify and decrypt a notification.

        Args:
            headers: Request headers (any case)
            raw_body: Request body exactly as received

        Returns:
            NotificationResult on success, VerificationFailure otherwise
        """
        envelope = NotificationEnvelope.from_request(headers, raw_body)
        if envelope is None:
            return self._fail(FailureReason.MISSING_HEADERS, "Missing WeChat Pay signature headers")

        try:
            public_key = await self.certificates.get_public_key(envelope.serial_no)
        except (GatewayRequestError, DecryptionError) as e:
            logger.error(f"Cannot load platform certificates: {e}")
            return self._fail(FailureReason.CERTIFICATE_UNAVAILABLE, "Platform certificates unavailable")

        if public_key is None:
            return self._fail(
                FailureReason.CERTIFICATE_NOT_FOUND,
                f"Unknown platform certificate {envelope.serial_no}"
            )

        if not verify_signature(envelope.signed_message(), envelope.signature, public_key):
            return self._fail(
                FailureReason.INVALID_SIGNATURE,
                f"Invalid signature (serial {envelope.serial_no})"
            )

        return self._parse_notification(envelope.raw_body)

    def _parse_notification(
        self,
        raw_body: bytes
    ) -> Union[NotificationResult[AttachT], VerificationFailure]:
        """Decrypt the resource of an authenticated notification body."""
        try:
            body = json.loads(raw_body)
            notification_id = body.get('id')
            blob = EncryptedBlob.from_dict(body['resource'])
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            return self._fail(FailureReason.MALFORMED_PAYLOAD, f"Malformed notification body: {e}")

        try:
            resource = self.cipher.decrypt(blob)
        except DecryptionError as e:
            return self._fail(
                FailureReason.DECRYPTION_FAILED,
                f"Cannot decrypt notification {notification_id}: {e.message}"
            )

        try:
            result = NotificationResult.from_dict(
                resource,
                attach_parser=self.attach_parser,
                notification_id=notification_id
            )
        except (ValueError, TypeError) as e:
            return self._fail(
                FailureReason.MALFORMED_PAYLOAD,
                f"Malformed notification resource {notification_id}: {e}"
            )

        logger.info(
            f"Verified notification {notification_id}: "
            f"out_trade_no={result.out_trade_no}, trade_state={result.trade_state.value}"
        )
        return result

    @staticmethod
    def _fail(reason: FailureReason, message: str) -> VerificationFailure:
        logger.warning(f"Notification rejected ({reason.value}): {message}")
        return VerificationFailure(reason=reason, message=message)
