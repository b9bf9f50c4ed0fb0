"""
Shared fixtures for the WeChat Pay tests.

Builds merchant and platform key pairs, self-signed platform
certificates, and gateway-style encrypted envelopes.
"""

import base64
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.x509.oid import NameOID

from models.merchant import MerchantIdentity
from models.notification import EncryptedBlob
from services.cipher import PayloadCipher
from services.signer import Signer

APIV3_SECRET = '0123456789abcdefghijklmnopqrstuv'
PLATFORM_SERIAL = 0x5157F09EFDC096DE15EBE81A47057A7232F1B8E1
PLATFORM_SERIAL_HEX = '5157F09EFDC096DE15EBE81A47057A7232F1B8E1'


def encrypt(plaintext: str, key: str, nonce: str, associated_data: str) -> EncryptedBlob:
    """Seal plaintext the way the gateway does (ciphertext || tag, base64)."""
    sealed = AESGCM(key.encode('utf-8')).encrypt(
        nonce.encode('utf-8'),
        plaintext.encode('utf-8'),
        associated_data.encode('utf-8')
    )
    return EncryptedBlob(
        ciphertext=base64.b64encode(sealed).decode('ascii'),
        nonce=nonce,
        associated_data=associated_data
    )


def make_certificate(key: rsa.RSAPrivateKey, serial: int) -> str:
    """Build a self-signed PEM certificate for a platform key."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, 'Tenpay.com Root CA')])
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(serial)
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .sign(key, hashes.SHA256())
    )
    return certificate.public_bytes(serialization.Encoding.PEM).decode('ascii')


def rsa_sign(key: rsa.RSAPrivateKey, message: bytes) -> str:
    return base64.b64encode(
        key.sign(message, padding.PKCS1v15(), hashes.SHA256())
    ).decode('ascii')


def certificate_listing(*certificates: Tuple[str, str]) -> Dict[str, Any]:
    """
    Build a /v3/certificates response.

    Args:
        certificates: (listed serial, PEM) pairs; the listed serial is
            only metadata and may deliberately disagree with the PEM
    """
    data = []
    for index, (listed_serial, pem) in enumerate(certificates):
        data.append({
            'serial_no': listed_serial,
            'effective_time': '2024-01-01T00:00:00+08:00',
            'expire_time': '2029-01-01T00:00:00+08:00',
            'encrypt_certificate': dict(
                encrypt(pem, APIV3_SECRET, f'certnonce{index:03d}', 'certificate').to_dict()
            )
        })
    return {'data': data}


def make_notification(
    resource: Dict[str, Any],
    platform_key: rsa.RSAPrivateKey,
    serial: str = PLATFORM_SERIAL_HEX,
    notification_id: str = 'EV-2018022511223320873'
) -> Tuple[Dict[str, str], bytes]:
    """
    Build the headers and raw body of a gateway notification.

    Returns:
        (headers, raw_body)
    """
    blob = encrypt(
        json.dumps(resource, ensure_ascii=False),
        APIV3_SECRET,
        'fdasflkja484',
        'transaction'
    )
    raw_body = json.dumps({
        'id': notification_id,
        'create_time': '2024-01-01T12:00:00+08:00',
        'resource_type': 'encrypt-resource',
        'event_type': 'TRANSACTION.SUCCESS',
        'summary': '支付成功',
        'resource': blob.to_dict()
    }, ensure_ascii=False).encode('utf-8')

    timestamp = '1554208460'
    nonce = 'c5ac7061fccab6bf3e254dcf98995b8c'
    message = f"{timestamp}\n{nonce}\n".encode('utf-8') + raw_body + b"\n"
    headers = {
        'Wechatpay-Timestamp': timestamp,
        'Wechatpay-Nonce': nonce,
        'Wechatpay-Serial': serial,
        'Wechatpay-Signature': rsa_sign(platform_key, message),
        'Content-Type': 'application/json'
    }
    return headers, raw_body


def transaction_resource(trade_state: str = 'SUCCESS', attach: str = '{"type":"business1","data1":{}}') -> Dict[str, Any]:
    """Build a decrypted transaction resource."""
    return {
        'appid': 'wxd678efh567hg6787',
        'mchid': '1230000109',
        'out_trade_no': 'NO_12341700000000000123456',
        'transaction_id': '1217752501201407033233368018',
        'trade_type': 'JSAPI',
        'trade_state': trade_state,
        'trade_state_desc': '支付成功' if trade_state == 'SUCCESS' else '未支付',
        'bank_type': 'CMC',
        'attach': attach,
        'success_time': '2024-01-01T12:00:00+08:00',
        'payer': {'openid': 'oUpF8uMuAJO_M2pxb1Q9zNjWeS6o'},
        'amount': {'total': 100, 'payer_total': 100, 'currency': 'CNY', 'payer_currency': 'CNY'}
    }


@pytest.fixture(scope='session')
def merchant_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope='session')
def platform_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope='session')
def platform_cert(platform_key) -> str:
    return make_certificate(platform_key, PLATFORM_SERIAL)


@pytest.fixture
def merchant(merchant_key) -> MerchantIdentity:
    return MerchantIdentity(
        appid='wxd678efh567hg6787',
        mchid='1230000109',
        cert_serial_no='1DDE55AD98ED71D6EDD4A4A16996DE7B47773A8C',
        private_key=merchant_key,
        apiv3_secret=APIV3_SECRET
    )


@pytest.fixture
def signer(merchant) -> Signer:
    return Signer(merchant)


@pytest.fixture
def cipher() -> PayloadCipher:
    return PayloadCipher(APIV3_SECRET)


@pytest.fixture
def gateway_client(signer, platform_cert) -> MagicMock:
    """Gateway client stub serving one platform certificate."""
    client = MagicMock()
    client.signer = signer
    client.get = AsyncMock(return_value=certificate_listing(('IGNORED', platform_cert)))
    client.post = AsyncMock()
    return client


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
