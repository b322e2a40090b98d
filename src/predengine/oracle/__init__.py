"""Oracle price feeds: account codec, feed sources, freshness-tracking cache."""

from predengine.oracle.cache import OracleFeedCache, SubscriptionHandle
from predengine.oracle.codec import decode_price_account, encode_price_account
from predengine.oracle.source import FeedSource, LedgerFeedSource

__all__ = [
    "FeedSource",
    "LedgerFeedSource",
    "OracleFeedCache",
    "SubscriptionHandle",
    "decode_price_account",
    "encode_price_account",
]
