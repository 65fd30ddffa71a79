"""Event bus delivery tests."""

from __future__ import annotations

from typing import Any

from core.event_bus import WINDOWS_CHANGED, EventBus


def test_handlers_run_in_subscription_order() -> None:
    bus = EventBus()
    seen: list[str] = []
    bus.subscribe(WINDOWS_CHANGED, lambda payload: seen.append(f"a:{payload['action']}"))
    bus.subscribe(WINDOWS_CHANGED, lambda payload: seen.append(f"b:{payload['action']}"))

    bus.emit(WINDOWS_CHANGED, {"action": "create"})
    bus.emit("desktop.changed", {"field": "theme"})

    assert seen == ["a:create", "b:create"]


def test_unsubscribe_during_delivery_affects_later_events() -> None:
    bus = EventBus()
    seen: list[dict[str, Any]] = []

    def once(payload: dict[str, Any]) -> None:
        seen.append(payload)
        remove()

    remove = bus.subscribe(WINDOWS_CHANGED, once)
    bus.subscribe(WINDOWS_CHANGED, seen.append)

    bus.emit(WINDOWS_CHANGED, {"n": 1})
    bus.emit(WINDOWS_CHANGED, {"n": 2})

    assert [p["n"] for p in seen] == [1, 1, 2]
    assert bus.subscriber_count(WINDOWS_CHANGED) == 1
