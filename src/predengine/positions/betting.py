"""Place bets: submit a signed transfer, wait for confirmation, then record the position."""

from __future__ import annotations

import structlog

from predengine.errors import InsufficientFundsError, InvalidInputError, NetworkError
from predengine.models.position import Position, Side
from predengine.network.base import ConfirmationStatus, LedgerClient, TransferRequest
from predengine.positions.ledger import PositionLedger

log = structlog.get_logger(__name__)


class BettingService:
    """Ties a LedgerClient to a PositionLedger. The ledger changes only after a committed transfer."""

    def __init__(self, client: LedgerClient, ledger: PositionLedger, *, check_balance: bool = True) -> None:
        self.client = client
        self.ledger = ledger
        self.check_balance = check_balance

    async def place_bet(
        self,
        market_id: str,
        side: Side | str,
        amount: float,
        odds: float,
        transfer: TransferRequest,
    ) -> Position:
        """
        Validate, transfer, confirm, then open a pending position.
        NetworkError (submit/confirm failure or a failed confirmation) leaves the ledger untouched.
        """
        if amount <= 0:
            raise InvalidInputError(f"amount must be > 0, got {amount}")
        if odds < 0:
            raise InvalidInputError(f"odds must be >= 0, got {odds}")
        if transfer.amount != amount:
            raise InvalidInputError(f"transfer amount {transfer.amount} does not match bet amount {amount}")
        try:
            Side(side)
        except ValueError:
            raise InvalidInputError(f"side must be 'yes' or 'no', got {side!r}") from None

        if self.check_balance:
            balance = await self.client.get_balance(transfer.from_account)
            if balance < amount:
                raise InsufficientFundsError(f"balance {balance} below stake {amount}")

        receipt = await self.client.submit(transfer)
        status = await self.client.confirm(receipt)
        if status is not ConfirmationStatus.COMMITTED:
            log.warning("bet_transfer_failed", market_id=market_id, signature=receipt.signature)
            raise NetworkError(f"transfer {receipt.signature} was not committed")

        position = self.ledger.open(market_id, side, amount, odds)
        log.info("bet_placed", id=position.id, market_id=market_id, signature=receipt.signature)
        return position
