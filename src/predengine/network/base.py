"""Ledger client protocol - balance, transfer submission/confirmation, account-change notifications."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Protocol

from pydantic import BaseModel, ConfigDict, Field

AccountCallback = Callable[[bytes], None]


class ConfirmationStatus(str, Enum):
    COMMITTED = "committed"
    FAILED = "failed"


class TransferRequest(BaseModel):
    """Signed value-transfer request. Signing happens outside the core."""

    model_config = ConfigDict(frozen=True)

    from_account: str
    to_account: str
    amount: float = Field(..., gt=0)
    signed_payload: str  # base64 serialized, signed transaction


class Receipt(BaseModel):
    """Pending receipt returned by submit(); pass to confirm()."""

    model_config = ConfigDict(frozen=True)

    signature: str
    submitted_at: int | None = None  # ms epoch


class LedgerClient(Protocol):
    """External ledger/network collaborator. All calls are fallible and safe to retry."""

    async def get_balance(self, account: str) -> float: ...
    async def get_account_data(self, account: str) -> bytes | None: ...
    async def submit(self, request: TransferRequest) -> Receipt: ...
    async def confirm(self, receipt: Receipt) -> ConfirmationStatus: ...
    async def on_account_change(self, account: str, callback: AccountCallback) -> int: ...
    async def remove_account_listener(self, subscription_id: int) -> None: ...
