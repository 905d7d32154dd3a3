# drmp_core/common/crypto.py
"""
Encryption-at-rest for PII columns plus display masking.

Keys come from settings.DRMP_FIELD_ENCRYPTION_KEYS (environment / secret
store). The first key encrypts; every key is tried for decryption so keys
can be rotated without rewriting rows first.
"""
from __future__ import annotations

import hashlib
import hmac
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken, MultiFernet
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import models


def _configured_keys() -> list[str]:
    raw = getattr(settings, "DRMP_FIELD_ENCRYPTION_KEYS", None) or []
    if isinstance(raw, str):
        raw = raw.split(",")
    keys = [k.strip() for k in raw if k and k.strip()]
    if not keys:
        raise ImproperlyConfigured(
            "DRMP_FIELD_ENCRYPTION_KEYS is not set. Provide one or more Fernet keys via the environment."
        )
    return keys


@lru_cache(maxsize=1)
def _fernet_for(keys: tuple[str, ...]) -> MultiFernet:
    return MultiFernet([Fernet(k.encode("ascii")) for k in keys])


def get_fernet() -> MultiFernet:
    return _fernet_for(tuple(_configured_keys()))


def encrypt_value(plaintext: Optional[str]) -> Optional[str]:
    if plaintext is None or plaintext == "":
        return plaintext
    return get_fernet().encrypt(str(plaintext).encode("utf-8")).decode("ascii")


def decrypt_value(ciphertext: Optional[str]) -> Optional[str]:
    if ciphertext is None or ciphertext == "":
        return ciphertext
    try:
        return get_fernet().decrypt(ciphertext.encode("ascii")).decode("utf-8")
    except InvalidToken as exc:
        raise ImproperlyConfigured("Stored PII could not be decrypted with the configured keys.") from exc


def _digest_key() -> bytes:
    key = (getattr(settings, "DRMP_SEARCH_DIGEST_KEY", None) or "").strip()
    if not key:
        raise ImproperlyConfigured(
            "DRMP_SEARCH_DIGEST_KEY is not set. Provide a dedicated secret for search digests via the environment."
        )
    return key.encode("utf-8")


def search_digest(value: Optional[str]) -> str:
    """
    Keyed, deterministic digest used for exact-match lookups on encrypted
    columns. Uses its own secret so rotating the encryption keys leaves
    stored digests valid. Changing DRMP_SEARCH_DIGEST_KEY requires
    recomputing the digest columns.
    """
    if not value:
        return ""
    return hmac.new(_digest_key(), value.strip().encode("utf-8"), hashlib.sha256).hexdigest()


class EncryptedTextField(models.TextField):
    """
    Text column stored as a Fernet token, exposed as plaintext in Python.
    Not usable for LIKE/equality queries; pair it with a digest column.
    """

    def from_db_value(self, value, expression, connection):
        return decrypt_value(value)

    def get_prep_value(self, value):
        value = super().get_prep_value(value)
        return encrypt_value(value)


# -------------------------
# Display masking
# -------------------------

def mask_id_card(id_card: Optional[str]) -> Optional[str]:
    if id_card is None or len(id_card) < 8:
        return id_card
    return id_card[:4] + "*" * 10 + id_card[-4:]


def mask_phone(phone: Optional[str]) -> Optional[str]:
    if phone is None or len(phone) < 7:
        return phone
    return phone[:3] + "****" + phone[-4:]


def mask_name(name: Optional[str]) -> Optional[str]:
    if name is None or len(name) <= 1:
        return name
    if len(name) == 2:
        return name[0] + "*"
    return name[0] + "*" * (len(name) - 2) + name[-1]
