"""
Payment data models.

Represents prepaid orders sent to the gateway and the parameters the
mini-program needs to open the payment sheet.
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

DEFAULT_CURRENCY = 'CNY'
DEFAULT_EXPIRY = timedelta(days=1)
PAY_SIGN_TYPE = 'RSA'


@dataclass
class PrepayOrder:
    """
    A "create prepaid order" request, before it is sent.

    Attributes:
        description: Order description shown to the payer
        notify_url: HTTPS URL that receives the payment notification
        money: Order amount in cents (fen)
        openid: Payer's openid in the mini-program
        attach: Business payload returned verbatim in the notification
        expire_time: Payment deadline (defaults to one day from now)
    """

    description: str
    notify_url: str
    money: int
    openid: str
    attach: Any = None
    expire_time: Optional[datetime] = None

    def __post_init__(self):
        """Validate order fields."""
        self.validate()

    def validate(self) -> None:
        """
        Validate order fields.

        Raises:
            ValueError: If a field is invalid
        """
        if not self.description:
            raise ValueError("description is required")

        if not self.notify_url or not self.notify_url.startswith('https://'):
            raise ValueError("notify_url must be an HTTPS URL")

        if isinstance(self.money, bool) or not isinstance(self.money, int) or self.money <= 0:
            raise ValueError("money must be a positive integer amount in cents")

        if not self.openid:
            raise ValueError("openid is required")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PrepayOrder':
        """
        Create a PrepayOrder from a JSON request body.

        Raises:
            ValueError: If a field is missing or invalid
        """
        expire_time = data.get('expire_time')
        if isinstance(expire_time, str):
            expire_time = datetime.fromisoformat(expire_time.replace('Z', '+00:00'))
        elif expire_time is not None:
            raise ValueError("expire_time must be an ISO 8601 string")

        return cls(
            description=data.get('description', ''),
            notify_url=data.get('notify_url', ''),
            money=data.get('money'),
            openid=data.get('openid', ''),
            attach=data.get('attach'),
            expire_time=expire_time
        )

    def time_expire(self) -> str:
        """Payment deadline in RFC 3339 format."""
        expire = self.expire_time or datetime.now(timezone.utc) + DEFAULT_EXPIRY
        if expire.tzinfo is None:
            expire = expire.replace(tzinfo=timezone.utc)
        return expire.isoformat(timespec='seconds')

    def to_request_body(self, appid: str, mchid: str, out_trade_no: str) -> Dict[str, Any]:
        """
        Convert to the JSAPI prepay request body.

        Args:
            appid: Mini-program app ID
            mchid: Merchant number
            out_trade_no: Merchant-side trade number

        Returns:
            Request body dictionary
        """
        return {
            'appid': appid,
            'mchid': mchid,
            'description': self.description,
            'out_trade_no': out_trade_no,
            'time_expire': self.time_expire(),
            'notify_url': self.notify_url,
            'attach': json.dumps(self.attach, separators=(',', ':'), ensure_ascii=False),
            'amount': {
                'total': self.money,
                'currency': DEFAULT_CURRENCY
            },
            'payer': {
                'openid': self.openid
            }
        }


@dataclass
class PaymentParams:
    """
    Parameters for `wx.requestPayment` in the mini-program.

    Signed over `appid\\ntimeStamp\\nnonceStr\\npackage\\n`.
    """

    time_stamp: str
    nonce_str: str
    package: str
    pay_sign: str
    out_trade_no: str
    sign_type: str = PAY_SIGN_TYPE

    @property
    def prepay_id(self) -> str:
        return self.package.split('=', 1)[1]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the mini-program's field names."""
        return {
            'timeStamp': self.time_stamp,
            'nonceStr': self.nonce_str,
            'package': self.package,
            'signType': self.sign_type,
            'paySign': self.pay_sign
        }
