import os
import base64
from typing import Iterable, Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

_HEADER = b"v1"


class FieldCipher:
    """AES-256-GCM for single snapshot values, bound to caller-supplied AAD."""

    def __init__(self, key: Optional[bytes] = None):
        if key is None:
            key = AESGCM.generate_key(bit_length=256)
        if len(key) != 32:
            raise ValueError(
                f"Cipher key must be 32 bytes for AES-256. Got {len(key)} bytes."
            )
        self._aesgcm = AESGCM(key)

    @staticmethod
    def should_encrypt(key: str, encrypt_keys: Iterable[str]) -> bool:
        return key in set(encrypt_keys)

    def encrypt_bytes(self, plaintext: bytes, aad: bytes) -> str:
        nonce = os.urandom(12)
        ct = self._aesgcm.encrypt(nonce, plaintext, aad)
        return base64.b64encode(_HEADER + nonce + ct).decode("utf-8")

    def decrypt_bytes(self, payload_b64: str, aad: bytes) -> bytes:
        raw = base64.b64decode(payload_b64.encode("utf-8"))
        if raw[:2] != _HEADER:
            raise ValueError("Not encrypted with expected format/version header")
        nonce = raw[2:14]
        ct = raw[14:]
        return self._aesgcm.decrypt(nonce, ct, aad)
