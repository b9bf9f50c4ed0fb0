"""
Configuration module for the WeChat Pay mini-program service.

Loads settings from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


@dataclass
class MerchantConfig:
    """Merchant account and key material locations."""
    appid: str
    mchid: str
    private_key_file: str
    cert_serial_no: str
    apiv3_secret: str


@dataclass
class GatewayConfig:
    """WeChat Pay API endpoint configuration."""
    base_url: str
    timeout: int
    cert_cache_ttl: int  # Seconds
    cert_min_refresh_interval: int  # Seconds


@dataclass
class APIConfig:
    """API server configuration."""
    host: str
    port: int


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str
    file: Optional[str]


@dataclass
class ServiceConfig:
    """Service-level configuration."""
    name: str
    shutdown_timeout: int


class Config:
    """
    Main configuration class that aggregates all config sections.

    Usage:
        from config import config

        print(config.merchant.mchid)
        print(config.gateway.base_url)
    """

    def __init__(self):
        self._load_config()

    def _load_config(self):
        """Load all configuration from environment variables."""

        # Merchant configuration
        self.merchant = MerchantConfig(
            appid=os.getenv('WECHATPAY_APPID', ''),
            mchid=os.getenv('WECHATPAY_MCHID', ''),
            private_key_file=os.getenv('WECHATPAY_PRIVATE_KEY_FILE', ''),
            cert_serial_no=os.getenv('WECHATPAY_CERT_SERIAL_NO', ''),
            apiv3_secret=os.getenv('WECHATPAY_APIV3_SECRET', '')
        )

        # Gateway configuration
        self.gateway = GatewayConfig(
            base_url=os.getenv('WECHATPAY_BASE_URL', 'https://api.mch.weixin.qq.com').rstrip('/'),
            timeout=int(os.getenv('WECHATPAY_TIMEOUT', '10')),
            cert_cache_ttl=int(os.getenv('WECHATPAY_CERT_CACHE_TTL', str(12 * 3600))),
            cert_min_refresh_interval=int(os.getenv('WECHATPAY_CERT_MIN_REFRESH_INTERVAL', '60'))
        )

        # API configuration
        self.api = APIConfig(
            host=os.getenv('API_HOST', '0.0.0.0'),
            port=int(os.getenv('API_PORT', '8000'))
        )

        # Logging configuration
        self.logging = LoggingConfig(
            level=os.getenv('LOG_LEVEL', 'INFO'),
            file=os.getenv('LOG_FILE')
        )

        # Service configuration
        self.service = ServiceConfig(
            name=os.getenv('SERVICE_NAME', 'WeChatPayMiniApp'),
            shutdown_timeout=int(os.getenv('SHUTDOWN_TIMEOUT', '30'))
        )

    def validate(self) -> List[str]:
        """
        Validate required configuration values.

        Returns:
            List of validation error messages (empty if all valid)
        """
        errors = []

        if not self.merchant.appid:
            errors.append("WECHATPAY_APPID is required")

        if not self.merchant.mchid:
            errors.append("WECHATPAY_MCHID is required")

        if not self.merchant.private_key_file:
            errors.append("WECHATPAY_PRIVATE_KEY_FILE is required")

        if not self.merchant.cert_serial_no:
            errors.append("WECHATPAY_CERT_SERIAL_NO is required")

        if not self.merchant.apiv3_secret:
            errors.append("WECHATPAY_APIV3_SECRET is required")
        elif len(self.merchant.apiv3_secret.encode('utf-8')) != 32:
            errors.append("WECHATPAY_APIV3_SECRET must be exactly 32 bytes")

        if not self.gateway.base_url.startswith(('http://', 'https://')):
            errors.append("WECHATPAY_BASE_URL must be a valid HTTP(S) URL")

        return errors

    def is_valid(self) -> bool:
        """Check if configuration is valid."""
        return len(self.validate()) == 0


# Global configuration instance
config = Config()
