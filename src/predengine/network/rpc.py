"""JSON-RPC ledger client over httpx - balances, account data, transfer submit/confirm."""

from __future__ import annotations

import asyncio
import base64
import binascii
import time
from typing import Any

import httpx
import structlog

from predengine.clock import Clock, now_ms
from predengine.errors import NetworkError
from predengine.network.base import AccountCallback, ConfirmationStatus, Receipt, TransferRequest
from predengine.network.ws import AccountSubscriptions

log = structlog.get_logger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000
_COMMITTED = ("confirmed", "finalized")


def ws_url_for(rpc_url: str) -> str:
    """Derive the subscription endpoint from an HTTP RPC URL (http -> ws, https -> wss)."""
    if rpc_url.startswith("https://"):
        return "wss://" + rpc_url[len("https://") :]
    if rpc_url.startswith("http://"):
        return "ws://" + rpc_url[len("http://") :]
    return rpc_url


class RpcLedgerClient:
    """LedgerClient implementation for a Solana-style JSON-RPC node."""

    def __init__(
        self,
        rpc_url: str,
        *,
        ws_url: str | None = None,
        timeout: float = 10.0,
        commitment: str = "confirmed",
        confirm_timeout_sec: float = 30.0,
        confirm_poll_interval_sec: float = 0.5,
        reconnect_base_delay_sec: float = 1.0,
        reconnect_max_delay_sec: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.confirm_timeout_sec = confirm_timeout_sec
        self.confirm_poll_interval_sec = confirm_poll_interval_sec
        self.clock = clock
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http_client is None
        self._request_id = 0
        self._subscriptions = AccountSubscriptions(
            ws_url or ws_url_for(rpc_url),
            commitment=commitment,
            reconnect_base_delay_sec=reconnect_base_delay_sec,
            reconnect_max_delay_sec=reconnect_max_delay_sec,
        )

    async def _call(self, method: str, params: list[Any]) -> Any:
        self._request_id += 1
        body = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        try:
            resp = await self._http.post(self.rpc_url, json=body)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("rpc_request_failed", method=method, error=str(e))
            raise NetworkError(f"{method} failed: {e}") from e
        if not isinstance(data, dict):
            raise NetworkError(f"{method}: unexpected response {data!r}")
        if data.get("error"):
            raise NetworkError(f"{method} rejected: {data['error']}")
        return data.get("result")

    async def get_balance(self, account: str) -> float:
        result = await self._call("getBalance", [account, {"commitment": self.commitment}])
        lamports = result.get("value") if isinstance(result, dict) else result
        if lamports is None:
            return 0.0
        if isinstance(lamports, bool) or not isinstance(lamports, (int, float)):
            raise NetworkError(f"getBalance: unexpected value {lamports!r} for {account}")
        return float(lamports) / LAMPORTS_PER_SOL

    async def get_account_data(self, account: str) -> bytes | None:
        result = await self._call(
            "getAccountInfo",
            [account, {"encoding": "base64", "commitment": self.commitment}],
        )
        if result is None:
            return None
        if not isinstance(result, dict):
            raise NetworkError(f"getAccountInfo: unexpected result {result!r} for {account}")
        value = result.get("value")
        if value is None:
            return None
        if not isinstance(value, dict):
            raise NetworkError(f"getAccountInfo: unexpected value {value!r} for {account}")
        data = value.get("data")
        if not isinstance(data, list) or not data:
            raise NetworkError(f"getAccountInfo: unexpected data for {account}")
        try:
            return base64.b64decode(data[0])
        except (binascii.Error, TypeError) as e:
            raise NetworkError(f"getAccountInfo: bad base64 for {account}") from e

    async def submit(self, request: TransferRequest) -> Receipt:
        signature = await self._call(
            "sendTransaction",
            [request.signed_payload, {"encoding": "base64", "preflightCommitment": self.commitment}],
        )
        if not isinstance(signature, str) or not signature:
            raise NetworkError(f"sendTransaction: no signature returned ({signature!r})")
        log.info("transfer_submitted", signature=signature, amount=request.amount)
        return Receipt(signature=signature, submitted_at=self.clock())

    async def confirm(self, receipt: Receipt) -> ConfirmationStatus:
        """Poll signature status until committed or failed; NetworkError after confirm_timeout_sec."""
        deadline = time.monotonic() + self.confirm_timeout_sec
        while True:
            result = await self._call(
                "getSignatureStatuses",
                [[receipt.signature], {"searchTransactionHistory": True}],
            )
            statuses = result.get("value") if isinstance(result, dict) else None
            status = statuses[0] if isinstance(statuses, list) and statuses else None
            if status is not None and not isinstance(status, dict):
                raise NetworkError(f"getSignatureStatuses: unexpected status {status!r}")
            if status is not None:
                if status.get("err") is not None:
                    log.warning("transfer_failed", signature=receipt.signature, error=status["err"])
                    return ConfirmationStatus.FAILED
                if status.get("confirmationStatus") in _COMMITTED:
                    return ConfirmationStatus.COMMITTED
            if time.monotonic() >= deadline:
                raise NetworkError(f"confirmation timed out for {receipt.signature}")
            await asyncio.sleep(self.confirm_poll_interval_sec)

    async def on_account_change(self, account: str, callback: AccountCallback) -> int:
        return await self._subscriptions.add(account, callback)

    async def remove_account_listener(self, subscription_id: int) -> None:
        await self._subscriptions.remove(subscription_id)

    async def aclose(self) -> None:
        await self._subscriptions.close()
        if self._owns_http:
            await self._http.aclose()
