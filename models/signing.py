"""
Request signing model.

A SigningContext is everything that goes into the signature of one
outbound API request.
"""

import secrets
import string
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

NONCE_ALPHABET = string.ascii_letters + string.digits + '_-'

# Nonce lengths expected by the gateway
REQUEST_NONCE_LENGTH = 32
PAYMENT_NONCE_LENGTH = 26


def generate_nonce(length: int = REQUEST_NONCE_LENGTH) -> str:
    """Generate a random URL-safe nonce string."""
    return ''.join(secrets.choice(NONCE_ALPHABET) for _ in range(length))


def path_and_query(url: str) -> str:
    """Return the path plus query string of a URL, as signed by the gateway."""
    parts = urlsplit(url)
    path = parts.path or '/'
    if parts.query:
        return f"{path}?{parts.query}"
    return path


@dataclass(frozen=True)
class SigningContext:
    """
    Signing input for a single outbound request.

    Attributes:
        method: HTTP method, upper case
        path: URL path plus query string
        timestamp: Unix timestamp in seconds
        nonce: Random string, at least 32 characters
        body: Request body exactly as sent ('' for GET)
    """

    method: str
    path: str
    timestamp: int
    nonce: str
    body: str = ''

    @classmethod
    def create(
        cls,
        method: str,
        url: str,
        body: str = '',
        timestamp: Optional[int] = None,
        nonce: Optional[str] = None
    ) -> 'SigningContext':
        """
        Create a context for a request to `url`, with a fresh timestamp and nonce.

        Args:
            method: HTTP method
            url: Absolute URL or path of the request
            body: Serialized request body
            timestamp: Override the current time (seconds)
            nonce: Override the generated nonce

        Returns:
            SigningContext instance
        """
        return cls(
            method=method.upper(),
            path=path_and_query(url),
            timestamp=int(time.time()) if timestamp is None else timestamp,
            nonce=nonce or generate_nonce(REQUEST_NONCE_LENGTH),
            body=body
        )

    def canonical_string(self) -> str:
        """Build the signed message; the trailing newline is part of it."""
        return f"{self.method}\n{self.path}\n{self.timestamp}\n{self.nonce}\n{self.body}\n"
