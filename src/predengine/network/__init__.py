"""Ledger/network client: protocol, JSON-RPC implementation, account subscriptions."""

from predengine.network.base import ConfirmationStatus, LedgerClient, Receipt, TransferRequest
from predengine.network.rpc import RpcLedgerClient

__all__ = ["ConfirmationStatus", "LedgerClient", "Receipt", "RpcLedgerClient", "TransferRequest"]
