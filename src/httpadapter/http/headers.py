"""
=============================================================================
HEADER COLLECTIONS
=============================================================================

Two shapes of header collection exist in this package:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    RAW vs ABSTRACT HEADERS                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Transport (RawRequest.headers)       Handler (Request.headers)    │
    │   CIMultiDict, many values per name    CIMultiDictProxy, one value  │
    │                                                                      │
    │   Accept: text/html                                                 │
    │   Accept: application/json    ─────►   Accept: text/html,           │
    │                                                application/json     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Names are case-insensitive in both. Abstract collections are read-only
proxies so a Request or Response can be shared freely between middleware.

A value of None in a Response header collection means "do not set this
header"; the response writer skips it.

=============================================================================
"""

from typing import Iterable, Mapping, Optional, Tuple, Union

from multidict import CIMultiDict, CIMultiDictProxy


HeaderValue = Union[str, Iterable[str], None]
HeadersInit = Union[
    Mapping[str, HeaderValue],
    Iterable[Tuple[str, HeaderValue]],
    None,
]


def fold_headers(raw: Mapping[str, str]) -> "CIMultiDictProxy[str]":
    """
    Collapse a multi-valued header collection into one value per name.

    Repeated values are joined with a bare comma, in arrival order. The
    casing of the first occurrence of each name is preserved.
    """
    folded: CIMultiDict[str] = CIMultiDict()
    for name in raw.keys():
        if name in folded:
            continue
        getall = getattr(raw, "getall", None)
        values = getall(name) if getall is not None else [raw[name]]
        folded[name] = ",".join(values)
    return CIMultiDictProxy(folded)


def _join(value: HeaderValue) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return ",".join(value)


def _pairs(headers: HeadersInit) -> Iterable[Tuple[str, HeaderValue]]:
    if headers is None:
        return ()
    if isinstance(headers, Mapping):
        return headers.items()
    return headers


def _merge(headers: "CIMultiDict[Optional[str]]", name: str, value: Optional[str]) -> None:
    existing = headers.get(name)
    if existing is None or value is None:
        headers[name] = value
    else:
        headers[name] = f"{existing},{value}"


def normalize_headers(headers: HeadersInit) -> "CIMultiDictProxy[Optional[str]]":
    """
    Build a read-only case-insensitive collection from user input.

    Accepts a mapping or an iterable of (name, value) pairs. List values and
    names repeated in the pairs are joined with commas; None values are kept.
    """
    normalized: CIMultiDict[Optional[str]] = CIMultiDict()
    for name, value in _pairs(headers):
        _merge(normalized, name, _join(value))
    return CIMultiDictProxy(normalized)


def update_headers(
    original: Mapping[str, Optional[str]],
    updates: HeadersInit,
    *,
    drop_none: bool = False,
) -> "CIMultiDictProxy[Optional[str]]":
    """
    Return a copy of ``original`` with ``updates`` applied.

    An update replaces the value in ``original``; a name repeated within
    ``updates`` is joined with commas. When ``drop_none`` is set a None
    value removes the header instead of being stored.
    """
    merged: CIMultiDict[Optional[str]] = CIMultiDict(original)
    updated = set()
    for name, value in _pairs(updates):
        joined = _join(value)
        key = name.lower()
        if joined is None and drop_none:
            merged.popall(name, None)
            updated.discard(key)
        elif key in updated:
            _merge(merged, name, joined)
        else:
            merged[name] = joined
            updated.add(key)
    return CIMultiDictProxy(merged)
