"""
WeChat Pay API.

Provides the payment notification endpoint the gateway calls, and a
prepay endpoint for the mini-program backend.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from aiohttp import web

from exceptions import GatewayRequestError
from models.notification import FailureReason, NotificationResult, VerificationFailure
from models.payment import PrepayOrder
from services.certificate_store import CertificateStore
from services.notification_verifier import NotificationVerifier
from services.payment_service import PaymentService

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[NotificationResult], Awaitable[None]]

FAILURE_STATUS = {
    FailureReason.MISSING_HEADERS: 400,
    FailureReason.MALFORMED_PAYLOAD: 400,
    FailureReason.CERTIFICATE_UNAVAILABLE: 503,
}


class PayAPI:
    """
    REST API for mini-program payments.

    Endpoints:
    - POST /api/wechatpay/notify - Payment result notification (gateway)
    - POST /api/wechatpay/prepay - Create a prepaid order
    - GET /api/health - Health check
    """

    def __init__(
        self,
        verifier: NotificationVerifier,
        payment_service: Optional[PaymentService] = None,
        certificates: Optional[CertificateStore] = None
    ):
        """
        Initialize the API.

        Args:
            verifier: Notification verifier
            payment_service: Optional payment service for the prepay endpoint
            certificates: Optional certificate store for health stats
        """
        self.verifier = verifier
        self.payment_service = payment_service
        self.certificates = certificates
        self._handlers: List[NotificationHandler] = []

    def on_notification(self, handler: NotificationHandler) -> None:
        """
        Register a business handler for verified notifications.

        Handlers own deduplication; the gateway may deliver a
        notification more than once.
        """
        self._handlers.append(handler)

    def setup_routes(self, app: web.Application) -> None:
        """
        Set up API routes.

        Args:
            app: aiohttp web application
        """
        app.router.add_post('/api/wechatpay/notify', self.handle_notify)
        app.router.add_post('/api/wechatpay/prepay', self.prepay)
        app.router.add_get('/api/health', self.health_check)

    async def handle_notify(self, request: web.Request) -> web.Response:
        """
        Receive a payment notification.

        The body is read as raw bytes because the signature covers the
        exact transmitted content. Answers 204 once every handler has
        accepted the result; any other status makes the gateway redeliver.
        """
        raw_body = await request.read()
        result = await self.verifier.verify(request.headers, raw_body)

        if isinstance(result, VerificationFailure):
            return web.json_response(
                result.to_dict(),
                status=FAILURE_STATUS.get(result.reason, 403)
            )

        for handler in self._handlers:
            try:
                await handler(result)
            except Exception as e:
                logger.error(
                    f"Notification handler failed for {result.out_trade_no}: {e}",
                    exc_info=True
                )
                return web.json_response(
                    {"code": "FAIL", "message": "Notification handling failed"},
                    status=500
                )

        return web.Response(status=204)

    async def prepay(self, request: web.Request) -> web.Response:
        """
        Create a prepaid order.

        Request body:
        {
            "description": "order",
            "notify_url": "https://...",
            "money": 100,
            "openid": "...",
            "attach": {...},
            "expire_time": "2024-01-01T00:00:00+08:00" (optional)
        }
        """
        if not self.payment_service:
            return web.json_response(
                {"error": "Payments are not enabled"},
                status=404
            )

        try:
            data = await request.json()
        except Exception:
            return web.json_response(
                {"error": "Invalid JSON body"},
                status=400
            )

        if not isinstance(data, dict):
            return web.json_response(
                {"error": "Request body must be an object"},
                status=400
            )

        try:
            order = PrepayOrder.from_dict(data)
        except ValueError as e:
            return web.json_response(
                {"error": str(e)},
                status=400
            )

        try:
            params = await self.payment_service.prepay(order)
        except GatewayRequestError as e:
            return web.json_response(
                {"error": e.message, "code": e.code},
                status=502
            )

        return web.json_response({
            "out_trade_no": params.out_trade_no,
            "payment": params.to_dict()
        })

    async def health_check(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        response: Dict[str, Any] = {"status": "healthy"}
        if self.certificates:
            response["certificates"] = self.certificates.get_stats()
        return web.json_response(response)


def create_app(
    verifier: NotificationVerifier,
    payment_service: Optional[PaymentService] = None,
    certificates: Optional[CertificateStore] = None,
    handlers: Optional[List[NotificationHandler]] = None
) -> web.Application:
    """
    Create the aiohttp application.

    Args:
        verifier: Notification verifier
        payment_service: Optional payment service
        certificates: Optional certificate store
        handlers: Business handlers for verified notifications

    Returns:
        Configured aiohttp Application
    """
    app = web.Application()

    api = PayAPI(
        verifier=verifier,
        payment_service=payment_service,
        certificates=certificates
    )
    for handler in handlers or []:
        api.on_notification(handler)

    # Setup routes
    api.setup_routes(app)

    # Error handling middleware
    @web.middleware
    async def error_middleware(request, handler):
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except Exception as e:
            logger.error(f"Unhandled error: {e}", exc_info=True)
            return web.json_response(
                {"error": "Internal server error"},
                status=500
            )

    app.middlewares.append(error_middleware)

    return app
