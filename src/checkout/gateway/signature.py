"""IPN signature verification.

The gateway signs every notification: it names the signed fields in
``verify_key`` (comma separated), adds ``store_passwd`` = md5 of the store
password, sorts the keys, joins them as ``key=value`` pairs with ``&`` and
sends the md5 of that string as ``verify_sign``.
"""

import hashlib
import hmac
from collections.abc import Iterable, Mapping


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()  # noqa: S324


def compute_signature(payload: Mapping, keys: Iterable[str], store_password: str) -> str:
    """Signature over ``keys`` of ``payload``. Raises KeyError for a missing key."""
    signed = {key: str(payload[key]) for key in keys}
    signed["store_passwd"] = _md5(store_password)
    message = "&".join(f"{key}={signed[key]}" for key in sorted(signed))
    return _md5(message)


def verify_signature(payload: Mapping, store_password: str) -> bool:
    verify_sign = payload.get("verify_sign")
    verify_key = payload.get("verify_key")
    if not verify_sign or not verify_key:
        return False

    keys = [key.strip() for key in str(verify_key).split(",") if key.strip()]
    try:
        expected = compute_signature(payload, keys, store_password)
    except KeyError:
        return False
    return hmac.compare_digest(expected, str(verify_sign).lower())


def sign_payload(payload: dict, store_password: str, keys: Iterable[str] | None = None) -> dict:
    """Return a copy of ``payload`` carrying ``verify_key`` and ``verify_sign``."""
    keys = list(keys) if keys is not None else sorted(k for k in payload if k not in ("verify_key", "verify_sign"))
    signed = dict(payload)
    signed["verify_key"] = ",".join(keys)
    signed["verify_sign"] = compute_signature(payload, keys, store_password)
    return signed
