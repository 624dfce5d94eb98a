from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Protocol, Union
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from drive_backend.domain.share_paths import sanitize_share_path
from drive_backend.domain.share_uri import ShareUri

# Query key carrying the share address (long-form URL) or the sub-path (short link).
SHARE_PATH_QUERY_KEY = "path"

LONG_URL_ROUTE = "/home"
SHORT_URL_ROUTE = "/s"


class _MultiItems(Protocol):
    def multi_items(self) -> list[tuple[str, str]]: ...


# Starlette QueryParams, {key: [values]} or a sequence of (key, value) pairs.
QueryMergeSet = Union[_MultiItems, Mapping[str, Sequence[str]], Iterable[tuple[str, str]]]


def _query_pairs(query: QueryMergeSet | None) -> list[tuple[str, str]]:
    if query is None:
        return []
    multi_items = getattr(query, "multi_items", None)
    if callable(multi_items):
        return [(str(k), str(v)) for k, v in multi_items()]
    if isinstance(query, Mapping):
        pairs: list[tuple[str, str]] = []
        for key, values in query.items():
            if isinstance(values, str):
                pairs.append((key, values))
            else:
                pairs.extend((key, v) for v in values)
        return pairs
    return [(str(k), str(v)) for k, v in query]


def _group(pairs: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for key, value in pairs:
        grouped.setdefault(key, []).append(value)
    return grouped


def _join_base(base_url: str, route: str) -> str:
    return base_url.rstrip("/") + route


def share_short_url(base_url: str, share_id: str, password: str = "") -> str:
    url = _join_base(base_url, f"{SHORT_URL_ROUTE}/{quote(share_id, safe='')}")
    if password:
        url += "/" + quote(password, safe="")
    return url


def share_long_url(base_url: str, share_id: str, password: str, *, scheme: str) -> str:
    address = ShareUri.for_share(share_id, password, scheme=scheme)
    query = urlencode([(SHARE_PATH_QUERY_KEY, str(address))])
    return f"{_join_base(base_url, LONG_URL_ROUTE)}?{query}"


def build_redirect_url(
    base_url: str,
    share_id: str,
    password: str,
    sub_path: str | None,
    extra_query: QueryMergeSet | None,
    *,
    scheme: str,
) -> str:
    """Canonical long-form URL for a share, merged with the caller's query.

    The sub-path is appended to the share address already carried by the long
    URL. Every other caller parameter is appended to the target's values for
    that key, so repeated keys survive. The caller's own `path` key is always
    dropped so an empty value cannot shadow the resolved one.
    """
    sub_path = sanitize_share_path(sub_path)
    parts = urlsplit(share_long_url(base_url, share_id, password, scheme=scheme))
    target = _group(parse_qsl(parts.query, keep_blank_values=True))

    if sub_path:
        master_path = target.get(SHARE_PATH_QUERY_KEY, [""])[0]
        target[SHARE_PATH_QUERY_KEY] = [master_path + "/" + sub_path.lstrip("/")]

    forwarded = _group(_query_pairs(extra_query))
    forwarded.pop(SHARE_PATH_QUERY_KEY, None)
    for key, values in forwarded.items():
        target.setdefault(key, []).extend(values)

    query = urlencode([(key, value) for key, values in target.items() for value in values])
    return urlunsplit(parts._replace(query=query))
