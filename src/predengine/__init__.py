"""PredEngine - pricing, oracle feed cache, positions and portfolio stats for binary prediction markets."""

__version__ = "0.1.0"
