"""Structured share addresses and the tolerant parser used for crawler traffic.

A share address looks like ``drive://<id>:<password>@share/<path>``. Crawlers
and hand-written links frequently mangle the percent-encoding of the ``path``
query value that carries it, so `parse_share_uri` retries with progressively
more aggressive repairs before giving up.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import quote, unquote, urlsplit

from drive_backend.domain.errors import InvalidShareUriError


FILESYSTEM_SHARE = "share"

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def _check_percent_escapes(raw: str) -> None:
    i = 0
    n = len(raw)
    while i < n:
        if raw[i] != "%":
            i += 1
            continue
        if i + 2 < n and raw[i + 1] in _HEX_DIGITS and raw[i + 2] in _HEX_DIGITS:
            i += 3
            continue
        raise InvalidShareUriError(f"invalid URL escape at offset {i}")


@dataclass(frozen=True)
class ShareUri:
    scheme: str
    filesystem: str
    id: str = ""
    password: str = field(default="", repr=False)
    # Decoded, without leading or trailing separators.
    path: str = ""

    @classmethod
    def parse(cls, raw: str, *, scheme: str) -> "ShareUri":
        if not raw:
            raise InvalidShareUriError("empty address")

        _check_percent_escapes(raw)
        try:
            parts = urlsplit(raw)
        except ValueError as exc:
            raise InvalidShareUriError(str(exc)) from exc

        if parts.scheme.lower() != scheme.lower():
            raise InvalidShareUriError(f"unexpected scheme {parts.scheme!r}")

        userinfo, _, host = parts.netloc.rpartition("@")
        filesystem = unquote(host).lower()
        if not filesystem:
            raise InvalidShareUriError("missing filesystem")

        raw_id, _, raw_password = userinfo.partition(":")
        return cls(
            scheme=scheme,
            filesystem=filesystem,
            id=unquote(raw_id),
            password=unquote(raw_password),
            path=unquote(parts.path).strip("/"),
        )

    @classmethod
    def for_share(cls, share_id: str, password: str, *, scheme: str) -> "ShareUri":
        return cls(scheme=scheme, filesystem=FILESYSTEM_SHARE, id=share_id, password=password)

    def join_raw(self, sub_path: str) -> "ShareUri":
        """Append an already-normalized relative path."""
        sub_path = sub_path.strip("/")
        if not sub_path:
            return self
        joined = f"{self.path}/{sub_path}" if self.path else sub_path
        return ShareUri(
            scheme=self.scheme,
            filesystem=self.filesystem,
            id=self.id,
            password=self.password,
            path=joined,
        )

    def __str__(self) -> str:
        userinfo = quote(self.id, safe="")
        if self.password:
            userinfo += ":" + quote(self.password, safe="")
        if userinfo:
            userinfo += "@"
        base = f"{self.scheme}://{userinfo}{self.filesystem}"
        if self.path:
            return f"{base}/{quote(self.path, safe='/')}"
        return base


def sanitize_invalid_percent_escapes(raw: str) -> str:
    """Escape every ``%`` that does not start a valid ``%XX`` sequence."""
    if "%" not in raw:
        return raw

    out: list[str] = []
    i = 0
    n = len(raw)
    while i < n:
        ch = raw[i]
        if ch != "%":
            out.append(ch)
            i += 1
            continue
        if i + 2 < n and raw[i + 1] in _HEX_DIGITS and raw[i + 2] in _HEX_DIGITS:
            out.append(raw[i : i + 3])
            i += 3
            continue
        # Stray % would make the strict parser reject the whole address.
        out.append("%25")
        i += 1
    return "".join(out)


def _try_parse(raw: str, scheme: str) -> ShareUri | None:
    try:
        return ShareUri.parse(raw, scheme=scheme)
    except InvalidShareUriError:
        return None


def parse_share_uri(raw: str | None, *, scheme: str) -> ShareUri | None:
    """Best-effort parse of a share address; None when nothing usable is found.

    Order: as-is, stray-% repair, one round of percent-decoding (then the
    stray-% repair again on the decoded text). Addresses that parse but point at
    another filesystem are rejected rather than coerced.
    """
    if not raw:
        return None

    uri = _try_parse(raw, scheme)
    if uri is None:
        sanitized = sanitize_invalid_percent_escapes(raw)
        if sanitized != raw:
            uri = _try_parse(sanitized, scheme)

    if uri is None and "%" in raw:
        unescaped = unquote(raw)
        uri = _try_parse(unescaped, scheme)
        if uri is None:
            sanitized = sanitize_invalid_percent_escapes(unescaped)
            if sanitized != unescaped:
                uri = _try_parse(sanitized, scheme)

    if uri is None or uri.filesystem != FILESYSTEM_SHARE:
        return None
    return uri
