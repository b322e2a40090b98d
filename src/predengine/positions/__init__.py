"""Position ledger and bet placement."""

from predengine.positions.betting import BettingService
from predengine.positions.ledger import PositionLedger, new_position_id

__all__ = ["BettingService", "PositionLedger", "new_position_id"]
