"""
Envelope encryption for sensitive account fields.

An envelope is ``<iv>:<tag>:<ciphertext>``, each part hex-encoded. The IV is
16 random bytes, the cipher is AES-256-GCM, and the key is derived from the
server secret with scrypt, so the secret itself never keys the cipher.

Rows written before encryption was introduced hold plaintext. Rather than
carry a schema version, :meth:`FieldCipher.decrypt` probes its input: anything
that does not parse as an envelope is returned unchanged.

If an envelope parses but does not authenticate (wrong key, corrupted tag),
the stored value is returned as-is and a warning is logged. This keeps a
corrupted cosmetic field from failing the whole request, at the cost of
handing ciphertext to the caller. Deployments that prefer to fail closed set
``FIELD_CIPHER_FAIL_SOFT = 0``, and :class:`.CipherError` is raised instead.
"""

import logging
import os
import re
from functools import lru_cache
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from flask import current_app

from .exceptions import CipherError

logger = logging.getLogger(__name__)

IV_LENGTH = 16
TAG_LENGTH = 16
KEY_LENGTH = 32

_ENVELOPE = re.compile(r'^([0-9a-f]{32}):([0-9a-f]{32}):((?:[0-9a-f]{2})*)$')


@lru_cache(maxsize=8)
def derive_key(secret: str, salt: str) -> bytes:
    """Derive the AES key from the server secret. Deliberately slow."""
    kdf = Scrypt(salt=salt.encode('utf-8'), length=KEY_LENGTH,
                 n=2 ** 14, r=8, p=1)
    return kdf.derive(secret.encode('utf-8'))


class FieldCipher(object):
    """Encrypts and decrypts individual field values."""

    def __init__(self, secret: str, salt: str, fail_soft: bool = True) -> None:
        self._aead = AESGCM(derive_key(secret, salt))
        self._fail_soft = fail_soft

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        """Produce an envelope for ``plaintext``. Empty values pass through."""
        if not plaintext:
            return plaintext
        iv = os.urandom(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext.encode('utf-8'), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return ':'.join([iv.hex(), tag.hex(), ciphertext.hex()])

    def decrypt(self, stored: Optional[str]) -> Optional[str]:
        """Open an envelope, or return a legacy plaintext value unchanged."""
        if not stored:
            return stored
        match = _ENVELOPE.match(stored)
        if match is None:
            return stored
        iv, tag, ciphertext = (bytes.fromhex(part) for part in match.groups())
        try:
            return self._aead.decrypt(iv, ciphertext + tag, None) \
                .decode('utf-8')
        except (InvalidTag, UnicodeDecodeError) as e:
            if not self._fail_soft:
                raise CipherError('Could not decrypt field') from e
            logger.warning('Field decryption failed; returning stored value')
            return stored


def current_cipher() -> FieldCipher:
    """Get a :class:`FieldCipher` configured for the current application."""
    config = current_app.config
    return FieldCipher(config['FIELD_ENCRYPTION_SECRET'],
                       config['FIELD_ENCRYPTION_SALT'],
                       fail_soft=bool(config.get('FIELD_CIPHER_FAIL_SOFT',
                                                 True)))


def encrypt(plaintext: Optional[str]) -> Optional[str]:
    """Encrypt a field value with the application's cipher."""
    return current_cipher().encrypt(plaintext)


def decrypt(stored: Optional[str]) -> Optional[str]:
    """Decrypt a stored field value with the application's cipher."""
    return current_cipher().decrypt(stored)
