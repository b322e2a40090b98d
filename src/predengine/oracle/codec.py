"""Price account binary layout <-> PriceFeedEntry.

Layout (little endian, 32 bytes minimum):
    0   u64  price * 1e8
    8   u64  timestamp (ms epoch)
    16  u32  confidence * 1e6
    20  u8   status (1 active, 2 inactive, anything else stale)
"""

from __future__ import annotations

import struct

from pydantic import ValidationError

from predengine.errors import FeedDecodeError
from predengine.models.feed import FeedStatus, PriceFeedEntry

PRICE_SCALE = 100_000_000
CONFIDENCE_SCALE = 1_000_000
MIN_ACCOUNT_SIZE = 32

_HEADER = struct.Struct("<QQIB")

_STATUS_BY_CODE = {1: FeedStatus.ACTIVE, 2: FeedStatus.INACTIVE}
_CODE_BY_STATUS = {FeedStatus.ACTIVE: 1, FeedStatus.INACTIVE: 2, FeedStatus.STALE: 0}


def decode_price_account(symbol: str, data: bytes) -> PriceFeedEntry:
    if len(data) < MIN_ACCOUNT_SIZE:
        raise FeedDecodeError(f"{symbol}: price account too short ({len(data)} < {MIN_ACCOUNT_SIZE} bytes)")
    price_raw, timestamp, confidence_raw, status_code = _HEADER.unpack_from(data, 0)
    try:
        return PriceFeedEntry(
            symbol=symbol,
            price=price_raw / PRICE_SCALE,
            timestamp=timestamp,
            confidence=confidence_raw / CONFIDENCE_SCALE,
            status=_STATUS_BY_CODE.get(status_code, FeedStatus.STALE),
        )
    except ValidationError as e:
        raise FeedDecodeError(f"{symbol}: invalid price account fields: {e}") from e


def encode_price_account(entry: PriceFeedEntry) -> bytes:
    body = _HEADER.pack(
        round(entry.price * PRICE_SCALE),
        entry.timestamp,
        round(entry.confidence * CONFIDENCE_SCALE),
        _CODE_BY_STATUS[entry.status],
    )
    return body.ljust(MIN_ACCOUNT_SIZE, b"\x00")
