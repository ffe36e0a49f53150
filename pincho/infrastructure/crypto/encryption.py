"""Client-side encryption of notification fields.

Matches the Pincho app's scheme: AES-128-CBC with PKCS7 padding, a key
derived from the password's SHA-1 hex digest, and a Base64 variant where
``+``, ``/`` and ``=`` become ``-``, ``.`` and ``_``.
"""

import base64
import hashlib
import os
from typing import Tuple

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

BLOCK_SIZE_BYTES = 16

_B64_TRANSLATION = str.maketrans({"+": "-", "/": ".", "=": "_"})


def custom_b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii").translate(_B64_TRANSLATION)


def derive_encryption_key(password: str) -> bytes:
    """SHA-1 hex digest of the password, first 32 hex chars, as 16 raw bytes."""
    key_hex = hashlib.sha1(password.encode("utf-8")).hexdigest().lower()[:32]
    return bytes.fromhex(key_hex)


def generate_iv() -> Tuple[bytes, str]:
    """Returns a random 16-byte IV and its 32-character hex form."""
    iv = os.urandom(BLOCK_SIZE_BYTES)
    return iv, iv.hex()


def encrypt_message(plaintext: str, password: str, iv: bytes) -> str:
    """Encrypts ``plaintext`` with AES-128-CBC and encodes it with custom Base64."""
    if len(iv) != BLOCK_SIZE_BYTES:
        raise ValueError(f"IV must be {BLOCK_SIZE_BYTES} bytes, got {len(iv)}")

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()

    encryptor = Cipher(algorithms.AES(derive_encryption_key(password)), modes.CBC(iv)).encryptor()
    encrypted = encryptor.update(padded) + encryptor.finalize()
    return custom_b64encode(encrypted)
