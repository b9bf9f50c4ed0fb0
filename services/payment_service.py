"""
Payment Service.

Creates JSAPI prepaid orders and signs the parameters the mini-program
passes to `wx.requestPayment`.
"""

import logging
import random
import time
from typing import Any, Callable, Dict, Optional

from exceptions import GatewayRequestError
from models.merchant import MerchantIdentity
from models.payment import PaymentParams, PrepayOrder
from models.signing import PAYMENT_NONCE_LENGTH, generate_nonce
from .gateway_client import GatewayClient
from .signer import Signer

logger = logging.getLogger(__name__)

PREPAY_PATH = '/v3/pay/transactions/jsapi'


def generate_trade_no() -> str:
    """
    Generate a merchant trade number.

    Digits, letters and _-* only, 6-32 characters, unique per merchant.
    """
    return (
        'NO_'
        + str(random.randint(0, 10000))
        + str(int(time.time() * 1000))
        + str(random.randint(0, 10000000))
    )


class PaymentRequestBuilder:
    """Builds prepay request bodies and signed client payment parameters."""

    def __init__(self, merchant: MerchantIdentity, signer: Signer):
        self.merchant = merchant
        self.signer = signer

    def build_prepay_body(self, order: PrepayOrder, out_trade_no: str) -> Dict[str, Any]:
        return order.to_request_body(
            appid=self.merchant.appid,
            mchid=self.merchant.mchid,
            out_trade_no=out_trade_no
        )

    def build_payment_params(
        self,
        prepay_id: str,
        out_trade_no: str,
        timestamp: Optional[int] = None,
        nonce: Optional[str] = None
    ) -> PaymentParams:
        """
        Build and sign the mini-program payment parameters.

        The signature covers `appid\\ntimeStamp\\nnonceStr\\npackage\\n`,
        independent of any request Authorization signature.
        """
        time_stamp = str(int(time.time()) if timestamp is None else timestamp)
        nonce_str = nonce or generate_nonce(PAYMENT_NONCE_LENGTH)
        package = f"prepay_id={prepay_id}"

        message = f"{self.merchant.appid}\n{time_stamp}\n{nonce_str}\n{package}\n"
        return PaymentParams(
            time_stamp=time_stamp,
            nonce_str=nonce_str,
            package=package,
            pay_sign=self.signer.sign(message),
            out_trade_no=out_trade_no
        )


class PaymentService:
    """
    Prepaid order flow for mini-program payments.

    An order either succeeds with usable payment parameters or raises;
    there is no partial result.
    """

    def __init__(
        self,
        merchant: MerchantIdentity,
        client: GatewayClient,
        trade_no_factory: Optional[Callable[[], str]] = None
    ):
        """
        Initialize the payment service.

        Args:
            merchant: Merchant identity
            client: Authorized gateway client
            trade_no_factory: Generates `out_trade_no` values
        """
        self.merchant = merchant
        self.client = client
        self.builder = PaymentRequestBuilder(merchant, client.signer)
        self.trade_no_factory = trade_no_factory or generate_trade_no

    async def prepay(self, order: PrepayOrder) -> PaymentParams:
        """
        Create a prepaid order and sign the client payment parameters.

        Args:
            order: Order to create

        Returns:
            PaymentParams for `wx.requestPayment`

        Raises:
            GatewayRequestError: If the gateway rejects the order or the
                call fails
        """
        out_trade_no = self.trade_no_factory()
        body = self.builder.build_prepay_body(order, out_trade_no)

        logger.info(f"Creating prepaid order {out_trade_no} for {order.money} fen")
        response = await self.client.post(PREPAY_PATH, body)

        prepay_id = response.get('prepay_id')
        if not prepay_id:
            raise GatewayRequestError(
                "Gateway response did not include prepay_id",
                details=response
            )

        logger.info(f"Prepaid order {out_trade_no} created: prepay_id={prepay_id}")
        return self.builder.build_payment_params(prepay_id, out_trade_no)
