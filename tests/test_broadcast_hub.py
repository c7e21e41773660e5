import asyncio
import unittest

from fund_tracker.services.broadcast_hub import HEARTBEAT_PAYLOAD, BroadcastHub


class FakeConn:
    def __init__(self, *, fail: bool = False, delay: float = 0.0) -> None:
        self.fail = fail
        self.delay = delay
        self.sent: list[bytes] = []
        self.closed = 0

    async def send(self, payload: bytes) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionResetError("peer gone")
        self.sent.append(payload)

    async def close(self) -> None:
        self.closed += 1


class BroadcastHubTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.hub = BroadcastHub(heartbeat_interval_sec=60.0, write_timeout_sec=0.2)
        await self.hub.start()

    async def asyncTearDown(self):
        await self.hub.stop()

    async def test_double_register_counts_once(self):
        conn = FakeConn()
        await self.hub.register(conn)
        await self.hub.register(conn)

        self.assertEqual(await self.hub.subscriber_count(), 1)

    async def test_unregister_closes_once(self):
        conn = FakeConn()
        await self.hub.register(conn)

        await self.hub.unregister(conn)
        await self.hub.unregister(conn)

        self.assertEqual(conn.closed, 1)
        self.assertEqual(await self.hub.subscriber_count(), 0)

    async def test_failed_write_evicts_subscriber(self):
        a, b, c = FakeConn(), FakeConn(fail=True), FakeConn()
        for conn in (a, b, c):
            await self.hub.register(conn)

        delivered = await self.hub.broadcast(b"quotes-1")
        b.fail = False
        second = await self.hub.broadcast(b"quotes-2")

        self.assertEqual(delivered, 2)
        self.assertEqual(second, 2)
        self.assertEqual(a.sent, [b"quotes-1", b"quotes-2"])
        self.assertEqual(c.sent, [b"quotes-1", b"quotes-2"])
        self.assertEqual(b.sent, [])
        self.assertEqual(b.closed, 1)
        self.assertEqual(self.hub.evictions, 1)
        self.assertEqual(await self.hub.subscriber_count(), 2)

    async def test_slow_subscriber_times_out_and_is_evicted(self):
        fast, slow = FakeConn(), FakeConn(delay=1.0)
        await self.hub.register(fast)
        await self.hub.register(slow)

        delivered = await self.hub.broadcast(b"quotes")

        self.assertEqual(delivered, 1)
        self.assertEqual(fast.sent, [b"quotes"])
        self.assertEqual(await self.hub.subscriber_count(), 1)

    async def test_concurrent_registration_is_serialized(self):
        conns = [FakeConn() for _ in range(20)]

        await asyncio.gather(*(self.hub.register(conn) for conn in conns))
        await asyncio.gather(*(self.hub.unregister(conn) for conn in conns[:5]))

        self.assertEqual(await self.hub.subscriber_count(), 15)
        self.assertEqual(sum(conn.closed for conn in conns), 5)

    async def test_stop_closes_all_and_rejects_new_commands(self):
        a, b = FakeConn(), FakeConn()
        await self.hub.register(a)
        await self.hub.register(b)

        await self.hub.stop()

        self.assertFalse(self.hub.running)
        self.assertEqual((a.closed, b.closed), (1, 1))
        with self.assertRaises(RuntimeError):
            await self.hub.register(FakeConn())


class BroadcastHubHeartbeatTest(unittest.IsolatedAsyncioTestCase):
    async def test_heartbeat_pings_live_and_prunes_dead(self):
        hub = BroadcastHub(heartbeat_interval_sec=0.05, write_timeout_sec=0.2)
        await hub.start()
        live, dead = FakeConn(), FakeConn(fail=True)
        try:
            await hub.register(live)
            await hub.register(dead)
            await asyncio.sleep(0.2)

            self.assertIn(HEARTBEAT_PAYLOAD, live.sent)
            self.assertEqual(dead.closed, 1)
            self.assertEqual(await hub.subscriber_count(), 1)
        finally:
            await hub.stop()


if __name__ == '__main__':
    unittest.main()
