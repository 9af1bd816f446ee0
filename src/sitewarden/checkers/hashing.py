# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Verify candidate passwords against stored WordPress password hashes.

Supported formats: phpass portable (``$P$``/``$H$``), bcrypt
(``$2y$``/``$2b$``/``$2a$``), the ``$wp$`` bcrypt-over-HMAC-SHA384
variant, and legacy unsalted MD5.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import re

import bcrypt

_ITOA64 = "./0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
_MD5_HEX_RE = re.compile(r"^[a-f0-9]{32}$", re.I)
_BCRYPT_MAX_BYTES = 72


def _encode64(data: bytes, count: int) -> str:
    out: list[str] = []
    i = 0
    while i < count:
        value = data[i]
        i += 1
        out.append(_ITOA64[value & 0x3F])
        if i < count:
            value |= data[i] << 8
        out.append(_ITOA64[(value >> 6) & 0x3F])
        if i >= count:
            break
        i += 1
        if i < count:
            value |= data[i] << 16
        out.append(_ITOA64[(value >> 12) & 0x3F])
        if i >= count:
            break
        i += 1
        out.append(_ITOA64[(value >> 18) & 0x3F])
    return "".join(out)


def phpass_crypt(password: str, setting: str) -> str:
    """Compute a phpass portable hash of *password* for *setting*.

    *setting* is the first 12 characters of a stored hash (``$P$`` + cost
    character + 8-character salt).  Returns ``*0``/``*1`` on a malformed
    setting, which never equals a real hash.
    """
    failure = "*1" if setting.startswith("*0") else "*0"
    if setting[:3] not in ("$P$", "$H$") or len(setting) < 12:
        return failure

    count_log2 = _ITOA64.find(setting[3])
    if count_log2 < 7 or count_log2 > 30:
        return failure

    salt = setting[4:12].encode("utf-8")
    secret = password.encode("utf-8")
    digest = hashlib.md5(salt + secret).digest()
    for _ in range(1 << count_log2):
        digest = hashlib.md5(digest + secret).digest()
    return setting[:12] + _encode64(digest, 16)


def _bcrypt_check(secret: bytes, stored: str) -> bool:
    # $2y$ and $2b$ are the same algorithm; normalise for the bcrypt library
    normalised = "$2b$" + stored[4:] if stored.startswith("$2y$") else stored
    try:
        return bcrypt.checkpw(secret[:_BCRYPT_MAX_BYTES], normalised.encode("ascii"))
    except ValueError:
        return False


def check_password(password: str, stored_hash: str) -> bool:
    """Return ``True`` if *password* produces *stored_hash*."""
    if not stored_hash:
        return False

    if stored_hash.startswith("$wp"):
        digest = hmac.new(b"wp-sha384", password.strip().encode("utf-8"), hashlib.sha384).digest()
        return _bcrypt_check(base64.b64encode(digest), stored_hash[3:])

    if stored_hash.startswith(("$P$", "$H$")):
        computed = phpass_crypt(password, stored_hash[:12])
        return hmac.compare_digest(computed, stored_hash)

    if stored_hash.startswith(("$2y$", "$2b$", "$2a$")):
        return _bcrypt_check(password.strip().encode("utf-8"), stored_hash)

    if _MD5_HEX_RE.match(stored_hash):
        return hmac.compare_digest(
            hashlib.md5(password.encode("utf-8")).hexdigest(), stored_hash.lower()
        )

    return False
