from __future__ import annotations

import hashlib
import hmac
import string

from drive_backend.domain.errors import InvalidIdError

_ALPHABET = string.digits + string.ascii_letters
_BASE = len(_ALPHABET)
_CHECK_LEN = 4
# 11 base62 digits cover every signed 64-bit id.
_MAX_ID_DIGITS = 11


def _base62_encode(value: int) -> str:
    if value == 0:
        return _ALPHABET[0]
    digits: list[str] = []
    while value > 0:
        value, rem = divmod(value, _BASE)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits))


def _base62_decode(text: str) -> int:
    value = 0
    for ch in text:
        idx = _ALPHABET.find(ch)
        if idx < 0:
            raise InvalidIdError("invalid id character")
        value = value * _BASE + idx
    return value


class HmacIdCodec:
    """Reversible obfuscation of integer ids.

    Opaque form: a short keyed check over (kind, id) followed by the base62 id.
    Decoding recomputes the check, so ids of another kind or hand-edited ids are
    rejected.
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("id codec secret must not be empty")
        self._secret: bytes = secret.encode("utf-8")

    def _check(self, raw_id: int, kind: str) -> str:
        msg = f"{kind}:{raw_id}".encode("utf-8")
        digest = hmac.new(self._secret, msg, hashlib.sha256).digest()
        encoded = _base62_encode(int.from_bytes(digest[:8], "big"))
        return encoded.rjust(_CHECK_LEN, "0")[:_CHECK_LEN]

    def encode(self, raw_id: int, kind: str) -> str:
        if raw_id < 0:
            raise ValueError("id must be non-negative")
        return self._check(raw_id, kind) + _base62_encode(raw_id)

    def decode(self, opaque: str, kind: str) -> int:
        value = (opaque or "").strip()
        if len(value) <= _CHECK_LEN:
            raise InvalidIdError("id too short")

        check, digits = value[:_CHECK_LEN], value[_CHECK_LEN:]
        if len(digits) > _MAX_ID_DIGITS:
            raise InvalidIdError("id too long")
        # Canonical form only: no leading zero padding on the id part.
        if len(digits) > 1 and digits[0] == _ALPHABET[0]:
            raise InvalidIdError("non-canonical id")
        raw_id = _base62_decode(digits)
        if not hmac.compare_digest(check, self._check(raw_id, kind)):
            raise InvalidIdError("id check mismatch")
        return raw_id
