"""
Unit tests for configuration and result models.

Run with: pytest tests/test_config.py -v
"""

from datetime import timedelta

import pytest

from config import Config
from models.notification import FailureReason, NotificationResult, TradeState, VerificationFailure

from conftest import transaction_resource

MERCHANT_ENV = {
    'WECHATPAY_APPID': 'wxd678efh567hg6787',
    'WECHATPAY_MCHID': '1230000109',
    'WECHATPAY_PRIVATE_KEY_FILE': '/etc/wechatpay/apiclient_key.pem',
    'WECHATPAY_CERT_SERIAL_NO': '1DDE55AD98ED71D6EDD4A4A16996DE7B47773A8C',
    'WECHATPAY_APIV3_SECRET': '0123456789abcdefghijklmnopqrstuv',
}


@pytest.fixture
def merchant_env(monkeypatch):
    for key, value in MERCHANT_ENV.items():
        monkeypatch.setenv(key, value)


class TestConfig:
    """Tests for Config."""

    def test_valid_config(self, merchant_env):
        """Test a complete environment validates."""
        config = Config()

        assert config.is_valid()
        assert config.gateway.base_url == 'https://api.mch.weixin.qq.com'
        assert config.gateway.cert_cache_ttl == 12 * 3600

    def test_missing_merchant_values(self, monkeypatch):
        """Test each required merchant value is reported."""
        for key in MERCHANT_ENV:
            monkeypatch.delenv(key, raising=False)

        errors = Config().validate()

        assert len(errors) == len(MERCHANT_ENV)
        assert "WECHATPAY_MCHID is required" in errors

    def test_apiv3_secret_length(self, merchant_env, monkeypatch):
        """Test the APIv3 secret must be 32 bytes."""
        monkeypatch.setenv('WECHATPAY_APIV3_SECRET', 'short')

        assert "WECHATPAY_APIV3_SECRET must be exactly 32 bytes" in Config().validate()

    def test_gateway_overrides(self, merchant_env, monkeypatch):
        """Test gateway settings come from the environment."""
        monkeypatch.setenv('WECHATPAY_BASE_URL', 'https://sandbox.example.com/')
        monkeypatch.setenv('WECHATPAY_CERT_CACHE_TTL', '600')

        config = Config()

        assert config.gateway.base_url == 'https://sandbox.example.com'
        assert config.gateway.cert_cache_ttl == 600


class TestNotificationResult:
    """Tests for NotificationResult."""

    @pytest.mark.parametrize('state', [s.value for s in TradeState if s != TradeState.SUCCESS])
    def test_attach_hidden_for_non_success(self, state):
        """Test attach is only exposed for successful payments."""
        result = NotificationResult.from_dict(transaction_resource(state))

        assert result.attach is None
        assert not result.is_success

    def test_success_to_dict(self):
        """Test the serialized form of a successful payment."""
        result = NotificationResult.from_dict(transaction_resource('SUCCESS'), notification_id='EV-1')

        data = result.to_dict()

        assert data['attach'] == {'type': 'business1', 'data1': {}}
        assert data['notification_id'] == 'EV-1'
        assert data['payer'] == {'openid': 'oUpF8uMuAJO_M2pxb1Q9zNjWeS6o'}
        assert result.payer_total == 100

    def test_received_at_is_utc(self):
        """Test the receive time is timezone-aware UTC."""
        result = NotificationResult.from_dict(transaction_resource('SUCCESS'))

        assert result.received_at.utcoffset() == timedelta(0)

    def test_non_object_resource(self):
        """Test a decrypted string is not a valid result."""
        with pytest.raises(ValueError):
            NotificationResult.from_dict('plain text')


class TestVerificationFailure:
    """Tests for VerificationFailure."""

    def test_falsy_and_gateway_body(self):
        """Test failures are falsy and serialize to the gateway's format."""
        failure = VerificationFailure(FailureReason.INVALID_SIGNATURE, 'Invalid signature')

        assert not failure
        assert failure.to_dict() == {'code': 'FAIL', 'message': 'Invalid signature'}
