from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from starlette.websockets import WebSocket, WebSocketState

HEARTBEAT_PAYLOAD = b"ping"


class WebSocketSubscriber:
    """Subscriber handle over a FastAPI/Starlette websocket (text frames)."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def send(self, payload: bytes) -> None:
        await self.websocket.send_text(payload.decode("utf-8"))

    async def close(self) -> None:
        if (
            self.websocket.application_state == WebSocketState.DISCONNECTED
            or self.websocket.client_state == WebSocketState.DISCONNECTED
        ):
            return
        await self.websocket.close()


class BroadcastHub:
    """Single-owner subscriber set.

    register/unregister/broadcast are queued to one owner task, which is the
    only code that touches the subscriber set. Writes within a broadcast run
    concurrently, each bounded by ``write_timeout_sec``; a failed write evicts
    that subscriber.
    """

    def __init__(self, *, heartbeat_interval_sec: float = 30.0, write_timeout_sec: float = 5.0) -> None:
        self.heartbeat_interval_sec = heartbeat_interval_sec
        self.write_timeout_sec = write_timeout_sec
        self._subscribers: set[Any] = set()
        self._commands: asyncio.Queue | None = None
        self._owner_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self.broadcasts = 0
        self.evictions = 0

    @property
    def running(self) -> bool:
        return self._owner_task is not None and not self._owner_task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._commands = asyncio.Queue()
        self._owner_task = asyncio.create_task(self._run(), name="broadcast-hub")
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop(), name="broadcast-hub-heartbeat")
        print(f"[HUB][start] heartbeat_interval_sec={self.heartbeat_interval_sec}", flush=True)

    async def stop(self) -> None:
        if not self.running:
            return
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat_task
            self._heartbeat_task = None
        await self._submit("stop", None)
        await self._owner_task
        self._owner_task = None
        print("[HUB][stop]", flush=True)

    async def register(self, conn: Any) -> None:
        await self._submit("register", conn)

    async def unregister(self, conn: Any) -> None:
        await self._submit("unregister", conn)

    async def broadcast(self, payload: bytes) -> int:
        """Deliver ``payload`` to every live subscriber; returns the delivered count."""
        return await self._submit("broadcast", payload)

    async def subscriber_count(self) -> int:
        return await self._submit("count", None)

    async def _submit(self, kind: str, arg: Any) -> Any:
        if not self.running:
            raise RuntimeError("HUB_NOT_RUNNING")
        done = asyncio.get_running_loop().create_future()
        await self._commands.put((kind, arg, done))
        return await done

    async def _run(self) -> None:
        while True:
            kind, arg, done = await self._commands.get()
            try:
                if kind == "stop":
                    await self._close_all()
                    result = None
                elif kind == "register":
                    result = self._handle_register(arg)
                elif kind == "unregister":
                    result = await self._handle_unregister(arg)
                elif kind == "broadcast":
                    result = await self._handle_broadcast(arg)
                elif kind == "count":
                    result = len(self._subscribers)
                else:
                    raise ValueError(f"unknown hub command: {kind}")
            except Exception as exc:
                if not done.done():
                    done.set_exception(exc)
            else:
                if not done.done():
                    done.set_result(result)
            if kind == "stop":
                self._fail_pending()
                return

    def _fail_pending(self) -> None:
        while not self._commands.empty():
            _, _, done = self._commands.get_nowait()
            if not done.done():
                done.set_exception(RuntimeError("HUB_NOT_RUNNING"))

    def _handle_register(self, conn: Any) -> None:
        self._subscribers.add(conn)
        print(f"[HUB][register] online={len(self._subscribers)}", flush=True)

    async def _handle_unregister(self, conn: Any) -> bool:
        if conn not in self._subscribers:
            return False
        self._subscribers.discard(conn)
        await self._release(conn)
        print(f"[HUB][unregister] online={len(self._subscribers)}", flush=True)
        return True

    async def _handle_broadcast(self, payload: bytes) -> int:
        targets = list(self._subscribers)
        outcomes = await asyncio.gather(*(self._deliver(conn, payload) for conn in targets))

        dead = [conn for conn, ok in zip(targets, outcomes) if not ok]
        for conn in dead:
            self._subscribers.discard(conn)
            await self._release(conn)
        self.broadcasts += 1
        self.evictions += len(dead)
        if dead:
            print(f"[HUB][evict] count={len(dead)} online={len(self._subscribers)}", flush=True)
        return len(targets) - len(dead)

    async def _deliver(self, conn: Any, payload: bytes) -> bool:
        try:
            await asyncio.wait_for(conn.send(payload), timeout=self.write_timeout_sec)
        except Exception as exc:
            print(f"[HUB][write_error] error={exc!r}", flush=True)
            return False
        return True

    async def _release(self, conn: Any) -> None:
        try:
            await asyncio.wait_for(conn.close(), timeout=self.write_timeout_sec)
        except Exception as exc:
            print(f"[HUB][close_error] error={exc!r}", flush=True)

    async def _close_all(self) -> None:
        targets = list(self._subscribers)
        self._subscribers.clear()
        for conn in targets:
            await self._release(conn)

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval_sec)
            await self.broadcast(HEARTBEAT_PAYLOAD)
