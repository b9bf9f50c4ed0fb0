"""
Payload Cipher.

Opens the AEAD_AES_256_GCM envelopes the gateway uses to deliver
platform certificates and notification resources.
"""

import base64
import binascii
import json
from typing import Any, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from exceptions import DecryptionError
from models.notification import EncryptedBlob

TAG_LENGTH = 16


class PayloadCipher:
    """
    AES-256-GCM decryption keyed by the merchant's APIv3 secret.

    A decrypted payload is returned as parsed JSON when it is JSON, and
    as the plain string otherwise (platform certificates are PEM text).
    """

    def __init__(self, key: Union[str, bytes]):
        """
        Initialize the cipher.

        Args:
            key: 32-byte APIv3 secret
        """
        if isinstance(key, str):
            key = key.encode('utf-8')
        if len(key) != 32:
            raise ValueError("AES-256-GCM key must be exactly 32 bytes")
        self._aesgcm = AESGCM(key)

    def decrypt_text(self, blob: EncryptedBlob) -> str:
        """
        Decrypt an envelope to its plaintext string.

        Raises:
            DecryptionError: On malformed input or tag mismatch
        """
        try:
            data = base64.b64decode(blob.ciphertext, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError("Ciphertext is not valid base64") from e

        if len(data) < TAG_LENGTH:
            raise DecryptionError("Ciphertext is shorter than the authentication tag")

        # AESGCM expects ciphertext || tag, the layout the gateway delivers
        try:
            plaintext = self._aesgcm.decrypt(
                blob.nonce.encode('utf-8'),
                data,
                blob.associated_data.encode('utf-8')
            )
        except InvalidTag as e:
            raise DecryptionError("Authentication tag mismatch") from e
        except ValueError as e:
            raise DecryptionError(f"Invalid envelope: {e}") from e

        try:
            return plaintext.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecryptionError("Plaintext is not valid UTF-8") from e

    def decrypt(self, blob: EncryptedBlob) -> Union[Any, str]:
        """
        Decrypt an envelope, parsing the plaintext as JSON when possible.

        Args:
            blob: Gateway envelope

        Returns:
            Parsed JSON value, or the raw plaintext string

        Raises:
            DecryptionError: On malformed input or tag mismatch
        """
        text = self.decrypt_text(blob)
        try:
            return json.loads(text)
        except ValueError:
            return text
