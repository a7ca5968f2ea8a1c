"""Shared helpers for the reconciliation layer.

The gateway, cache and cost model repeat a few patterns:
- flatten AWS tag lists into a plain mapping
- normalize timestamps to UTC
- convert provider numbers to Decimal without float drift
- iterate paginated AWS operations

Keeping these helpers in one place keeps behavior consistent across modules.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Tuple

from botocore.exceptions import OperationNotPageableError


def utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Return ``dt`` converted to timezone-aware UTC (or None)."""

    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def now_utc() -> datetime:
    """Return the current UTC timestamp."""

    return datetime.now(timezone.utc)


def safe_int(value: Any, *, default: int = 0) -> int:
    """Best-effort integer conversion."""
    if isinstance(value, bool):
        return int(default)
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


def to_decimal(value: Any, *, default: Decimal = Decimal("0")) -> Decimal:
    """Convert provider numbers (float, int or numeric strings) to Decimal.

    Floats go through ``str`` so that ``0.05`` stays ``Decimal("0.05")``.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return default


def tag_map(tags: Any) -> dict[str, str]:
    """Flatten AWS tags into a ``{key: value}`` dict, preserving case.

    Supports a dict of {k: v}, a list of {"Key": ..., "Value": ...} or None.
    """

    out: dict[str, str] = {}
    if not tags:
        return out

    if isinstance(tags, Mapping):
        for k, v in tags.items():
            key = str(k or "").strip()
            if key:
                out[key] = str(v or "")
        return out

    if isinstance(tags, list):
        for item in tags:
            if not isinstance(item, Mapping):
                continue
            key = str(item.get("Key") or "").strip()
            if key:
                out[key] = str(item.get("Value") or "")
    return out


def paginate_items(
    client: Any,
    operation: str,
    result_key: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    request_token_key: str = "NextToken",
    response_token_keys: Sequence[str] = ("NextToken",),
    paginator_fallback_exceptions: Tuple[type[Exception], ...] = (OperationNotPageableError, AttributeError),
    use_paginator: bool = True,
) -> Iterator[Any]:
    """Yield items from a paginator when available, else a token-loop fallback.

    The fallback only applies when no paginator can be obtained; errors raised
    while fetching pages propagate unchanged (no call is ever repeated).
    ``use_paginator=False`` forces the token loop, for callers that pass the
    page-size parameter (``MaxResults``) explicitly.
    """
    params = dict(params or {})

    paginator = None
    if use_paginator and hasattr(client, "get_paginator"):
        try:
            paginator = client.get_paginator(operation)
        except paginator_fallback_exceptions:
            paginator = None

    if paginator is not None:
        for page in paginator.paginate(**params):
            yield from page.get(result_key, []) or []
        return

    call = getattr(client, operation, None)
    if call is None:
        raise AttributeError(f"client has no operation {operation}")

    next_token: Optional[str] = None
    while True:
        req = dict(params)
        if next_token:
            req[request_token_key] = next_token
        resp = call(**req) if req else call()
        yield from resp.get(result_key, []) or []

        next_token = None
        for key in response_token_keys:
            token = resp.get(key)
            if token:
                next_token = str(token)
                break
        if not next_token:
            break
