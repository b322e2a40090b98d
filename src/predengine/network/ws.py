"""Account-change subscriptions over a JSON-RPC WebSocket - subscribe, dispatch, reconnect."""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
from typing import Any

import structlog
import websockets
from websockets.asyncio.client import ClientConnection

from predengine.network.base import AccountCallback

log = structlog.get_logger(__name__)


def _parse_message(raw: str | bytes) -> dict[str, Any] | None:
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return msg if isinstance(msg, dict) else None


def decode_account_notification(msg: dict[str, Any]) -> tuple[int, bytes] | None:
    """Extract (server_subscription_id, account_data) from an accountNotification message."""
    if msg.get("method") != "accountNotification":
        return None
    params = msg.get("params") or {}
    sub_id = params.get("subscription")
    value = (params.get("result") or {}).get("value") or {}
    data = value.get("data")
    if sub_id is None or not isinstance(data, list) or not data:
        return None
    try:
        return int(sub_id), base64.b64decode(data[0])
    except (binascii.Error, TypeError, ValueError):
        return None


class AccountSubscriptions:
    """
    One WebSocket connection multiplexing accountSubscribe listeners.
    Local ids returned by add() stay valid across reconnects; every listener is resubscribed on reconnect.
    """

    def __init__(
        self,
        ws_url: str,
        *,
        commitment: str = "confirmed",
        reconnect_base_delay_sec: float = 1.0,
        reconnect_max_delay_sec: float = 60.0,
        reconnect_max_retries: int = 0,
    ) -> None:
        self.ws_url = ws_url
        self.commitment = commitment
        self.reconnect_base_delay_sec = reconnect_base_delay_sec
        self.reconnect_max_delay_sec = reconnect_max_delay_sec
        self.reconnect_max_retries = reconnect_max_retries
        self._listeners: dict[int, tuple[str, AccountCallback]] = {}
        self._server_to_local: dict[int, int] = {}
        self._local_to_server: dict[int, int] = {}
        self._pending: dict[int, int] = {}  # request id -> local id
        self._orphans: list[int] = []  # server ids acked after their listener was removed
        self._next_local = 0
        self._next_request = 0
        self._ws: ClientConnection | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def add(self, account: str, callback: AccountCallback) -> int:
        self._next_local += 1
        local_id = self._next_local
        self._listeners[local_id] = (account, callback)
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
        elif self._ws is not None:
            await self._subscribe(self._ws, local_id)
        return local_id

    async def remove(self, local_id: int) -> None:
        """Drop a listener. Unknown or already removed ids are ignored."""
        if self._listeners.pop(local_id, None) is None:
            return
        server_id = self._local_to_server.pop(local_id, None)
        if server_id is not None:
            self._server_to_local.pop(server_id, None)
            if self._ws is not None:
                try:
                    await self._send(self._ws, "accountUnsubscribe", [server_id])
                except websockets.ConnectionClosed as e:
                    log.warning("ws_unsubscribe_failed", subscription=server_id, error=str(e))
        if not self._listeners:
            await self.close()

    async def close(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _send(self, ws: ClientConnection, method: str, params: list[Any]) -> int:
        self._next_request += 1
        request_id = self._next_request
        await ws.send(json.dumps({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}))
        return request_id

    async def _subscribe(self, ws: ClientConnection, local_id: int) -> None:
        account, _ = self._listeners[local_id]
        request_id = await self._send(
            ws,
            "accountSubscribe",
            [account, {"encoding": "base64", "commitment": self.commitment}],
        )
        self._pending[request_id] = local_id

    async def _release_orphans(self, ws: ClientConnection) -> None:
        """Unsubscribe server ids whose listener was removed before the subscribe reply came back."""
        orphans, self._orphans = self._orphans, []
        for server_id in orphans:
            log.info("ws_unsubscribe_orphan", subscription=server_id)
            await self._send(ws, "accountUnsubscribe", [server_id])

    def _dispatch(self, msg: dict[str, Any]) -> None:
        request_id = msg.get("id")
        if request_id is not None and request_id in self._pending:
            local_id = self._pending.pop(request_id)
            if "error" in msg:
                log.warning("ws_subscribe_rejected", local_id=local_id, error=msg["error"])
                return
            try:
                server_id = int(msg["result"])
            except (KeyError, TypeError, ValueError):
                log.warning("ws_subscribe_bad_reply", local_id=local_id, reply=msg)
                return
            if local_id in self._listeners:
                self._server_to_local[server_id] = local_id
                self._local_to_server[local_id] = server_id
            else:
                self._orphans.append(server_id)
            return
        note = decode_account_notification(msg)
        if note is None:
            return
        server_id, data = note
        local_id = self._server_to_local.get(server_id)
        listener = self._listeners.get(local_id) if local_id is not None else None
        if listener is None:
            return
        account, callback = listener
        try:
            callback(data)
        except Exception as e:
            log.warning("ws_listener_error", account=account, error=str(e))

    async def _run(self) -> None:
        delay = self.reconnect_base_delay_sec
        retries = 0
        while self._listeners:
            try:
                async with websockets.connect(
                    self.ws_url,
                    ping_interval=20,
                    ping_timeout=20,
                    close_timeout=5,
                ) as ws:
                    self._ws = ws
                    delay = self.reconnect_base_delay_sec
                    retries = 0
                    self._server_to_local.clear()
                    self._local_to_server.clear()
                    self._pending.clear()
                    self._orphans.clear()
                    log.info("ws_connected", url=self.ws_url, listeners=len(self._listeners))
                    for local_id in list(self._listeners):
                        await self._subscribe(ws, local_id)
                    async for raw in ws:
                        msg = _parse_message(raw)
                        if msg is not None:
                            self._dispatch(msg)
                        if self._orphans:
                            await self._release_orphans(ws)
                    raise ConnectionError("server closed the connection")
            except asyncio.CancelledError:
                log.info("ws_cancelled")
                raise
            except Exception as e:
                log.warning("ws_error", error=str(e), delay=delay)
                if self.reconnect_max_retries and retries >= self.reconnect_max_retries:
                    log.error("ws_max_retries_reached")
                    break
                retries += 1
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.reconnect_max_delay_sec)
            finally:
                self._ws = None
        log.info("ws_subscriptions_stopped")
