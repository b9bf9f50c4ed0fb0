"""
Payment notification data models.

Represents the gateway's encrypted envelopes, platform certificates and
the decrypted payment result delivered to the notify URL.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Generic, Mapping, Optional, TypeVar, Union

AttachT = TypeVar('AttachT')

# Inbound notification headers
HEADER_TIMESTAMP = 'wechatpay-timestamp'
HEADER_NONCE = 'wechatpay-nonce'
HEADER_SERIAL = 'wechatpay-serial'
HEADER_SIGNATURE = 'wechatpay-signature'


@dataclass(frozen=True)
class EncryptedBlob:
    """
    AEAD envelope used by the gateway for certificates and notifications.

    `ciphertext` is base64 of the AES-256-GCM ciphertext followed by its
    16-byte authentication tag.
    """

    ciphertext: str
    nonce: str
    associated_data: str = ''
    algorithm: str = 'AEAD_AES_256_GCM'

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'EncryptedBlob':
        """
        Create EncryptedBlob from the gateway's JSON representation.

        Raises:
            ValueError: If a required field is missing
        """
        try:
            return cls(
                ciphertext=data['ciphertext'],
                nonce=data['nonce'],
                associated_data=data.get('associated_data') or '',
                algorithm=data.get('algorithm', 'AEAD_AES_256_GCM')
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Invalid encrypted resource: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'algorithm': self.algorithm,
            'ciphertext': self.ciphertext,
            'nonce': self.nonce,
            'associated_data': self.associated_data
        }


@dataclass(frozen=True)
class VerificationCertificate:
    """A gateway platform certificate used to verify notifications."""

    serial_no: str
    public_key_pem: str
    fetched_at: float


@dataclass(frozen=True)
class NotificationEnvelope:
    """
    Signed inbound notification, as received on the wire.

    `raw_body` holds the exact bytes that were transmitted; it is the
    signed content and must not be re-serialized.
    """

    timestamp: str
    nonce: str
    signature: str
    serial_no: str
    raw_body: bytes

    @classmethod
    def from_request(
        cls,
        headers: Mapping[str, str],
        raw_body: Union[bytes, str]
    ) -> Optional['NotificationEnvelope']:
        """
        Create an envelope from request headers and raw body.

        Header names are matched case-insensitively.

        Returns:
            NotificationEnvelope, or None if a required header is missing
        """
        lowered = {str(k).lower(): v for k, v in headers.items()}
        values = [
            lowered.get(name)
            for name in (HEADER_TIMESTAMP, HEADER_NONCE, HEADER_SIGNATURE, HEADER_SERIAL)
        ]
        if not all(values):
            return None

        if isinstance(raw_body, str):
            raw_body = raw_body.encode('utf-8')

        timestamp, nonce, signature, serial_no = values
        return cls(
            timestamp=timestamp,
            nonce=nonce,
            signature=signature,
            serial_no=serial_no.upper(),
            raw_body=raw_body
        )

    def signed_message(self) -> bytes:
        """Build the message the gateway signed."""
        return (
            f"{self.timestamp}\n{self.nonce}\n".encode('utf-8')
            + self.raw_body
            + b"\n"
        )


class TradeState(str, Enum):
    """Payment lifecycle states reported by the gateway."""
    SUCCESS = "SUCCESS"
    REFUND = "REFUND"
    NOTPAY = "NOTPAY"
    CLOSED = "CLOSED"
    REVOKED = "REVOKED"
    USERPAYING = "USERPAYING"
    PAYERROR = "PAYERROR"


@dataclass
class NotificationResult(Generic[AttachT]):
    """
    Decrypted payment result.

    `attach` is the business payload given to `prepay`, returned
    verbatim. It is only decoded and exposed when the trade state is
    SUCCESS; for every other state it is None.
    """

    trade_state: TradeState
    appid: str
    mchid: str
    out_trade_no: str
    transaction_id: Optional[str] = None
    trade_type: Optional[str] = None
    trade_state_desc: Optional[str] = None
    bank_type: Optional[str] = None
    success_time: Optional[str] = None
    payer_openid: Optional[str] = None
    amount: Dict[str, Any] = field(default_factory=dict)
    attach: Optional[AttachT] = None
    notification_id: Optional[str] = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_success(self) -> bool:
        return self.trade_state == TradeState.SUCCESS

    @property
    def total(self) -> Optional[int]:
        """Order amount in cents (fen)."""
        return self.amount.get('total')

    @property
    def payer_total(self) -> Optional[int]:
        """Amount actually paid by the user, in cents (fen)."""
        return self.amount.get('payer_total')

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        attach_parser: Optional[Callable[[Any], AttachT]] = None,
        notification_id: Optional[str] = None
    ) -> 'NotificationResult[AttachT]':
        """
        Create a NotificationResult from the decrypted resource.

        Args:
            data: Decrypted resource object
            attach_parser: Converts the decoded attach value into the
                business type; identity when omitted
            notification_id: The outer notification `id`

        Raises:
            ValueError: If the resource is malformed, or the attach of a
                successful payment is not valid JSON or is rejected by
                `attach_parser`
        """
        if not isinstance(data, Mapping):
            raise ValueError("Decrypted resource is not an object")

        try:
            trade_state = TradeState(data['trade_state'])
        except KeyError as e:
            raise ValueError("Decrypted resource has no trade_state") from e

        payer = data.get('payer') or {}
        amount = data.get('amount') or {}
        if not isinstance(payer, Mapping):
            raise ValueError("payer is not an object")
        if not isinstance(amount, Mapping):
            raise ValueError("amount is not an object")

        attach = None
        if trade_state == TradeState.SUCCESS:
            attach = json.loads(data.get('attach') or 'null')
            if attach_parser is not None:
                try:
                    attach = attach_parser(attach)
                except Exception as e:
                    raise ValueError(f"Invalid attach: {e!r}") from e

        return cls(
            trade_state=trade_state,
            appid=data.get('appid', ''),
            mchid=data.get('mchid', ''),
            out_trade_no=data.get('out_trade_no', ''),
            transaction_id=data.get('transaction_id'),
            trade_type=data.get('trade_type'),
            trade_state_desc=data.get('trade_state_desc'),
            bank_type=data.get('bank_type'),
            success_time=data.get('success_time'),
            payer_openid=payer.get('openid'),
            amount=dict(amount),
            attach=attach,
            notification_id=notification_id
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            'notification_id': self.notification_id,
            'trade_state': self.trade_state.value,
            'appid': self.appid,
            'mchid': self.mchid,
            'out_trade_no': self.out_trade_no,
            'transaction_id': self.transaction_id,
            'trade_type': self.trade_type,
            'trade_state_desc': self.trade_state_desc,
            'bank_type': self.bank_type,
            'success_time': self.success_time,
            'payer': {'openid': self.payer_openid},
            'amount': self.amount,
            'received_at': self.received_at.isoformat()
        }
        if self.is_success:
            result['attach'] = self.attach
        return result


class FailureReason(str, Enum):
    """Why an inbound notification was rejected."""
    MISSING_HEADERS = "MISSING_HEADERS"
    CERTIFICATE_UNAVAILABLE = "CERTIFICATE_UNAVAILABLE"
    CERTIFICATE_NOT_FOUND = "CERTIFICATE_NOT_FOUND"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    DECRYPTION_FAILED = "DECRYPTION_FAILED"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"


@dataclass(frozen=True)
class VerificationFailure:
    """Result of a notification that could not be trusted or read."""

    reason: FailureReason
    message: str

    def __bool__(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the failure body the gateway expects."""
        return {'code': 'FAIL', 'message': self.message}
