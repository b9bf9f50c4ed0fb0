"""
WeChat Pay API client.

Performs authorized HTTP calls to the gateway. Every request is signed
over the exact body bytes that go on the wire.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from config import config
from exceptions import GatewayRequestError
from .signer import Signer

logger = logging.getLogger(__name__)

USER_AGENT = 'wechatpay-miniapp-python/0.1'


def serialize_body(payload: Optional[Dict[str, Any]]) -> str:
    """Serialize a request body the way it is signed and sent."""
    if payload is None:
        return ''
    return json.dumps(payload, separators=(',', ':'), ensure_ascii=False)


class GatewayClient:
    """
    Thin transport over aiohttp for WeChat Pay APIv3.

    Non-2xx responses and transport failures are raised as
    GatewayRequestError. No request is retried.
    """

    def __init__(
        self,
        signer: Signer,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None
    ):
        """
        Initialize the client.

        Args:
            signer: Signer used to build the Authorization header
            base_url: Gateway base URL
            timeout: Total request timeout in seconds
        """
        self.signer = signer
        self.base_url = (base_url or config.gateway.base_url).rstrip('/')
        self.timeout = timeout or config.gateway.timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def start(self) -> None:
        """Open the HTTP session."""
        if self._session is None:
            logger.info(f"Starting gateway client for {self.base_url}")
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )

    async def stop(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def get(self, path: str) -> Dict[str, Any]:
        return await self.request('GET', path)

    async def post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.request('POST', path, payload)

    async def request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Send an authorized request to the gateway.

        Args:
            method: HTTP method
            path: API path, e.g. /v3/certificates
            payload: JSON body (None for GET)

        Returns:
            Decoded JSON response (empty dict for an empty body)

        Raises:
            GatewayRequestError: On transport failure or a non-2xx response
        """
        if self._session is None:
            await self.start()

        url = f"{self.base_url}{path}"
        body = serialize_body(payload)
        headers = {
            'Authorization': self.signer.build_authorization(method, url, body),
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'User-Agent': USER_AGENT
        }

        try:
            async with self._session.request(
                method,
                url,
                data=body.encode('utf-8') if body else None,
                headers=headers
            ) as response:
                status = response.status
                text = await response.text()

        except aiohttp.ClientError as e:
            logger.error(f"Network error calling {method} {path}: {e}")
            raise GatewayRequestError(str(e) or e.__class__.__name__) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Timeout calling {method} {path}")
            raise GatewayRequestError("Request timeout") from e

        return self._handle_response(method, path, status, text)

    def _handle_response(
        self,
        method: str,
        path: str,
        status: int,
        text: str
    ) -> Dict[str, Any]:
        """Decode a gateway response, raising on failures."""
        data: Any = None
        if text:
            try:
                data = json.loads(text)
            except ValueError:
                data = None

        if not 200 <= status < 300:
            if isinstance(data, dict):
                message = data.get('message') or text
                code = data.get('code') or 'GATEWAY_ERROR'
                details = data
            else:
                message = text or f"HTTP {status}"
                code = 'GATEWAY_ERROR'
                details = {}
            logger.error(f"Gateway rejected {method} {path}: status={status}, code={code}, message={message}")
            raise GatewayRequestError(message, status=status, code=code, details=details)

        if isinstance(data, dict) and data.get('errcode'):
            logger.error(f"Gateway error on {method} {path}: {data.get('errmsg')}")
            raise GatewayRequestError(
                data.get('errmsg') or f"errcode {data['errcode']}",
                status=status,
                code=str(data['errcode']),
                details=data
            )

        if data is None and text:
            raise GatewayRequestError(f"Unexpected non-JSON response from {path}", status=status)

        return data if isinstance(data, dict) else {}
