#!/usr/bin/env python3
"""
WeChat Pay Mini-Program Service.

Main entry point that wires the payment components together:
- Merchant identity and request signer
- Gateway client and platform certificate store
- Notification verifier
- Payment API server

Usage:
    python main.py

Environment variables:
    See .env.example for all configuration options.
"""

import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from aiohttp import web

from config import config
from models.merchant import MerchantIdentity
from models.notification import NotificationResult
from services.certificate_store import CertificateStore
from services.cipher import PayloadCipher
from services.gateway_client import GatewayClient
from services.notification_verifier import NotificationVerifier
from services.payment_service import PaymentService
from services.signer import Signer
from api.pay_api import create_app


# Configure logging
def setup_logging():
    """Configure logging based on config."""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    log_level = getattr(logging, config.logging.level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]

    if config.logging.file:
        # Ensure log directory exists
        log_dir = os.path.dirname(config.logging.file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(config.logging.file))

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers
    )

    # Reduce noise from third-party libraries
    logging.getLogger('aiohttp').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


async def log_notification(result: NotificationResult) -> None:
    """Default business handler: record the verified payment result."""
    logger.info(
        f"Payment {result.out_trade_no} ({result.transaction_id}): "
        f"{result.trade_state.value}, amount={result.total}"
    )


class PayService:
    """
    Main service orchestrator.

    Owns the gateway client session and the API server, and the single
    certificate store shared by all notification requests.
    """

    def __init__(self):
        self.gateway_client: Optional[GatewayClient] = None
        self.certificates: Optional[CertificateStore] = None
        self.api_app: Optional[web.Application] = None
        self.api_runner: Optional[web.AppRunner] = None
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Start all services."""
        logger.info("=" * 60)
        logger.info(f"Starting {config.service.name}")
        logger.info("=" * 60)

        # Validate configuration
        errors = config.validate()
        if errors:
            for error in errors:
                logger.error(f"Configuration error: {error}")
            raise ValueError("Invalid configuration")

        # Key material; failures here are fatal
        merchant = MerchantIdentity.from_config(config.merchant)
        signer = Signer(merchant)
        cipher = PayloadCipher(merchant.apiv3_key)

        logger.info("Initializing services...")
        self.gateway_client = GatewayClient(signer)
        await self.gateway_client.start()

        self.certificates = CertificateStore(self.gateway_client, cipher)
        verifier = NotificationVerifier(self.certificates, cipher)
        payment_service = PaymentService(merchant, self.gateway_client)

        # Start API server
        logger.info("Starting API server...")
        self.api_app = create_app(
            verifier=verifier,
            payment_service=payment_service,
            certificates=self.certificates,
            handlers=[log_notification]
        )

        self.api_runner = web.AppRunner(self.api_app)
        await self.api_runner.setup()

        site = web.TCPSite(
            self.api_runner,
            config.api.host,
            config.api.port
        )
        await site.start()

        logger.info("=" * 60)
        logger.info("Service started successfully!")
        logger.info(f"API server running at http://{config.api.host}:{config.api.port}")
        logger.info(f"Merchant: {merchant.mchid}, gateway: {config.gateway.base_url}")
        logger.info("=" * 60)

    async def stop(self) -> None:
        """Stop all services gracefully."""
        logger.info("Initiating graceful shutdown...")

        # Stop accepting new requests
        if self.api_runner:
            await self.api_runner.cleanup()

        if self.gateway_client:
            await self.gateway_client.stop()

        logger.info("Shutdown complete")
        self._shutdown_event.set()

    async def run(self) -> None:
        """Run the service until shutdown signal."""
        await self.start()

        # Wait for shutdown signal
        await self._shutdown_event.wait()

    def request_shutdown(self) -> None:
        """Request service shutdown."""
        asyncio.create_task(self.stop())


def handle_signal(service: PayService, sig: signal.Signals) -> None:
    """Handle shutdown signals."""
    logger.info(f"Received signal {sig.name}, initiating shutdown...")
    service.request_shutdown()


async def main() -> None:
    """Main entry point."""
    setup_logging()

    service = PayService()

    # Set up signal handlers
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda s=sig: handle_signal(service, s)
        )

    try:
        await service.run()
    except Exception as e:
        logger.error(f"Service error: {e}", exc_info=True)
        await service.stop()
        sys.exit(1)


if __name__ == '__main__':
    asyncio.run(main())
