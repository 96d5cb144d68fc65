from __future__ import annotations

import asyncio
import json

from panelbridge.core.fanout import ObserverHub
from panelbridge.core.pending import PendingCallRegistry
from panelbridge.core.presence import PresenceSnapshot
from panelbridge.core.ring_buffer import RingBuffer
from panelbridge.core.router import CallbackRouter
from panelbridge.core.types import CommandOutcome
from stubs import SECRET, StubObserver


def _router(log_capacity: int = 1000, timeout: float = 1.0) -> CallbackRouter:
    return CallbackRouter(
        secret=SECRET,
        registry=PendingCallRegistry(timeout=timeout),
        logs=RingBuffer(log_capacity),
        presence=PresenceSnapshot(),
        hub=ObserverHub(),
    )


def _events(observer: StubObserver) -> list[dict]:
    return [json.loads(raw) for raw in observer.sent]


def test_wrong_secret_changes_nothing() -> None:
    async def _run() -> None:
        router = _router()
        future = router.registry.register("req-1")
        observer = StubObserver()
        router.hub.subscribe(observer, {})

        for secret in ("wrong", "", None, 12345):
            accepted = await router.on_callback({
                "secret": secret,
                "requestId": "req-1",
                "success": True,
                "result": "kicked",
                "type": "log_push",
                "logs": [{"type": "chat", "message": "hi"}],
                "players": [{"name": "Mallory"}],
            })
            assert accepted is False

        assert not future.done()
        assert "req-1" in router.registry
        assert len(router.logs) == 0
        assert router.presence.current() == []
        await router.hub.flush()
        assert len(observer.sent) == 1  # only the init
        router.registry.drain()

    asyncio.run(_run())


def test_non_dict_payload_rejected() -> None:
    router = _router()
    assert router.authorize(["secret"]) is False
    assert router.authorize({}) is False


def test_answer_resolves_pending_call() -> None:
    async def _run() -> None:
        router = _router()
        future = router.registry.register("req-9")

        assert await router.on_callback({
            "secret": SECRET, "requestId": "req-9", "success": True, "result": "kicked",
        })
        assert await future == CommandOutcome(True, "kicked")

    asyncio.run(_run())


def test_correlation_id_alias_and_coercion() -> None:
    async def _run() -> None:
        router = _router()
        future = router.registry.register("c-1")

        await router.on_callback({"secret": SECRET, "correlationId": "c-1", "success": "true", "result": 42})
        assert await future == CommandOutcome(False, "42")

    asyncio.run(_run())


def test_unknown_request_id_is_ignored() -> None:
    async def _run() -> None:
        router = _router()
        assert await router.on_callback({"secret": SECRET, "requestId": "nope", "success": True})

    asyncio.run(_run())


def test_log_push_stored_and_fanned_out_in_order() -> None:
    async def _run() -> None:
        router = _router()
        observer = StubObserver()
        router.hub.subscribe(observer, {})

        await router.on_callback({
            "secret": SECRET,
            "type": "log_push",
            "logs": [{"n": 1}, "garbage", {"n": 2}, {"n": 3}],
        })

        stored = router.logs.recent()
        assert [e["n"] for e in stored] == [3, 2, 1]
        assert all(isinstance(e["receivedAt"], int) for e in stored)

        await router.hub.flush()
        live = _events(observer)[1:]
        assert [e["type"] for e in live] == ["log", "log", "log"]
        assert [e["data"]["n"] for e in live] == [1, 2, 3]

    asyncio.run(_run())


def test_logs_without_log_push_type_are_ignored() -> None:
    async def _run() -> None:
        router = _router()
        await router.on_callback({"secret": SECRET, "type": "other", "logs": [{"n": 1}]})
        await router.on_callback({"secret": SECRET, "type": "log_push", "logs": "not-a-list"})
        assert len(router.logs) == 0

    asyncio.run(_run())


def test_presence_replaced_wholesale() -> None:
    async def _run() -> None:
        router = _router()
        observer = StubObserver()
        router.hub.subscribe(observer, {})

        await router.on_callback({"secret": SECRET, "players": [{"name": "A"}, {"name": "B"}]})
        await router.on_callback({"secret": SECRET, "players": [{"name": "C"}]})

        assert router.presence.current() == [{"name": "C"}]
        await router.hub.flush()
        players_events = [e for e in _events(observer) if e["type"] == "players"]
        assert [e["data"] for e in players_events] == [[{"name": "A"}, {"name": "B"}], [{"name": "C"}]]

        await router.on_callback({"secret": SECRET, "players": []})
        assert router.presence.current() == []

    asyncio.run(_run())


def test_one_payload_can_answer_and_update_presence() -> None:
    async def _run() -> None:
        router = _router()
        future = router.registry.register("req-2")

        await router.on_callback({
            "secret": SECRET,
            "requestId": "req-2",
            "success": True,
            "result": "kicked",
            "players": [{"name": "Bob"}],
        })

        assert await future == CommandOutcome(True, "kicked")
        assert router.presence.current() == [{"name": "Bob"}]

    asyncio.run(_run())


def test_1001_logs_into_capacity_1000() -> None:
    async def _run() -> None:
        router = _router(log_capacity=1000)
        for n in range(1, 1002):
            await router.on_callback({"secret": SECRET, "type": "log_push", "logs": [{"n": n}]})

        entries = router.logs.recent()
        assert len(entries) == 1000
        assert entries[0]["n"] == 1001
        assert entries[-1]["n"] == 2
        assert all(e["n"] != 1 for e in entries)

    asyncio.run(_run())


def test_snapshot_contains_newest_logs_and_presence() -> None:
    async def _run() -> None:
        router = _router()
        router.snapshot_logs = 3
        await router.on_callback({
            "secret": SECRET, "type": "log_push", "logs": [{"n": n} for n in range(5)],
            "players": [{"name": "Zed"}],
        })

        snap = router.snapshot()
        assert [e["n"] for e in snap["logs"]] == [4, 3, 2]
        assert snap["players"] == [{"name": "Zed"}]

    asyncio.run(_run())
