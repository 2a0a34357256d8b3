"""Read-only token, series and NFT listing helpers."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .errors import ValidationError
from .rpc_client import PhantasmaRPCClient

logger = logging.getLogger(__name__)

MAX_SERIES_PAGE_LOOPS = 10
DATA_URI_PATTERN = re.compile(r"^data:", re.IGNORECASE)


@dataclass
class TokenSeriesListItem:
    carbon_token_id: int
    carbon_series_id: int
    series_id: str
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class TokenNftPage:
    items: List[Dict[str, Any]]
    next_cursor: Optional[str] = None


def _as_items(payload: Any) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if payload:
        return [payload]
    return []


def _metadata_pairs(entries: Any) -> Dict[str, str]:
    metadata: Dict[str, str] = {}
    if not isinstance(entries, list):
        return metadata
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        key = str(entry.get("key") or "").strip()
        if key:
            value = entry.get("value")
            metadata[key] = "" if value is None else str(value)
    return metadata


def get_tokens(client: PhantasmaRPCClient, owner_address: str) -> List[Dict[str, Any]]:
    if not owner_address:
        return []
    return list(client.get_tokens(owner_address, True))


def get_token_extended(client: PhantasmaRPCClient, symbol: str) -> Dict[str, Any]:
    if not symbol or not symbol.strip():
        raise ValidationError("symbol is required")
    return client.get_token(symbol.strip(), True, 0)


def list_token_series(
    client: PhantasmaRPCClient,
    symbol: str,
    carbon_token_id: int | None,
    page_size: int = 50,
) -> List[TokenSeriesListItem]:
    """Collect every series of a token, following cursors for a bounded number of pages."""

    if (not symbol or not symbol.strip()) and carbon_token_id is None:
        raise ValidationError("symbol or carbonTokenId is required")
    token_id = int(carbon_token_id or 0)

    collected: List[TokenSeriesListItem] = []
    cursor = ""
    loops = 0
    while True:
        page = client.get_token_series(symbol, token_id, page_size, cursor) or {}
        for entry in _as_items(page.get("result")):
            if not isinstance(entry, Mapping):
                continue
            entry_token_id = token_id
            raw_token_id = entry.get("carbonTokenId")
            if raw_token_id:
                try:
                    entry_token_id = int(raw_token_id)
                except (TypeError, ValueError):
                    logger.debug("Ignoring non-numeric carbonTokenId %r", raw_token_id)
            collected.append(
                TokenSeriesListItem(
                    carbon_token_id=entry_token_id,
                    carbon_series_id=int(entry.get("carbonSeriesId") or 0),
                    series_id=str(entry.get("seriesId") or ""),
                    metadata=_metadata_pairs(entry.get("metadata")),
                )
            )
        cursor = page.get("cursor") or ""
        if not cursor:
            break
        loops += 1
        if loops >= MAX_SERIES_PAGE_LOOPS:
            logger.warning("Stopped listing series for %s after %d pages", symbol or token_id, loops)
            break
    return collected


def list_token_nfts(
    client: PhantasmaRPCClient,
    carbon_token_id: int | None,
    carbon_series_id: int = 0,
    page_size: int = 10,
    cursor: str = "",
    extended: bool = True,
) -> TokenNftPage:
    if carbon_token_id is None:
        raise ValidationError("carbonTokenId is required")
    response = client.get_token_nfts(carbon_token_id, carbon_series_id, page_size, cursor, extended) or {}
    return TokenNftPage(items=_as_items(response.get("result")), next_cursor=response.get("cursor") or None)


# Token and NFT helpers --------------------------------------------------


def extract_token_flag_list(token: Mapping[str, Any] | None) -> List[str]:
    flags = (token or {}).get("flags")
    if not isinstance(flags, str):
        return []
    return [flag.strip().lower() for flag in flags.split(",") if flag.strip()]


def is_token_nft(token: Mapping[str, Any] | None) -> bool:
    return "fungible" not in extract_token_flag_list(token)


def get_token_metadata_map(token: Mapping[str, Any] | None) -> Dict[str, str]:
    return _metadata_pairs((token or {}).get("metadata"))


def get_token_icon_src(
    token: Mapping[str, Any] | None, metadata: Mapping[str, str] | None = None
) -> Optional[str]:
    """Return the token icon when it is an inline ``data:`` URI."""

    values = metadata if metadata is not None else get_token_metadata_map(token)
    raw = (values.get("icon") or "").strip()
    if not raw or not DATA_URI_PATTERN.match(raw):
        return None
    return raw


def get_nft_id(nft: Mapping[str, Any] | None) -> str:
    if not nft:
        return ""
    for key in ("id", "ID"):
        candidate = nft.get(key)
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return ""


def truncate_middle(value: str, max_length: int, tail_length: int | None = None) -> str:
    if not value:
        return ""
    if len(value) <= max_length:
        return value
    if tail_length is None:
        tail_length = min(6, max_length // 4)
    tail = max(1, min(tail_length, max_length - 1))
    head = max(1, max_length - tail - 1)
    return f"{value[:head]}…{value[-tail:]}"
