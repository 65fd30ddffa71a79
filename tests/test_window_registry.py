"""Window lifecycle, focus and stacking tests."""

from __future__ import annotations

import random
from typing import Any

import pytest

from core.errors import ValidationError
from core.event_bus import WINDOWS_CHANGED, EventBus
from world_model.window_registry import (
    BASE_Z_INDEX,
    COMPACTION_THRESHOLD,
    CascadePlacer,
    WindowRegistry,
)


def _focused(registry: WindowRegistry) -> list[str]:
    return [w.id for w in registry.all() if w.focused]


def test_create_focuses_new_window_on_top(windows: WindowRegistry) -> None:
    a = windows.create("notes", {"title": "A", "position": {"x": 0, "y": 0}})
    b = windows.create("notes", {"title": "B", "position": {"x": 10, "y": 10}})

    assert windows.focused_window_id == b
    assert _focused(windows) == [b]
    assert windows.get(a).z_index == BASE_Z_INDEX
    assert windows.get(b).z_index == BASE_Z_INDEX + 1
    assert windows.next_z_index == BASE_Z_INDEX + 2


def test_create_applies_defaults(windows: WindowRegistry) -> None:
    window = windows.get(windows.create("terminal"))

    assert window.title == "Untitled"
    assert (window.size.width, window.size.height) == (800, 600)
    assert window.state == "normal"
    assert window.resizable and window.movable and window.minimizable and window.maximizable


def test_cascade_positions_wrap_back_to_base() -> None:
    registry = WindowRegistry()
    positions = [registry.get(registry.create("notes")).position for _ in range(12)]

    assert (positions[0].x, positions[0].y) == (80, 80)
    assert (positions[1].x, positions[1].y) == (110, 110)
    assert (positions[10].x, positions[10].y) == (380, 380)
    # 410 would pass max_x, so the cursor wraps to the base slot
    assert (positions[11].x, positions[11].y) == (50, 50)


def test_cascade_respects_short_viewport() -> None:
    placer = CascadePlacer(viewport_height=600)
    assert placer.max_y == 100

    assert (placer.next_position().x, placer.y) == (80, 80)
    wrapped = placer.next_position()
    assert (wrapped.x, wrapped.y) == (50, 50)


def test_minimize_hands_focus_to_top_visible(windows: WindowRegistry) -> None:
    a = windows.create("notes")
    b = windows.create("notes")
    c = windows.create("notes")

    windows.minimize(c)

    assert windows.get(c).state == "minimized"
    assert windows.get(c).focused is False
    assert windows.focused_window_id == b
    assert _focused(windows) == [b]
    assert a in windows


def test_minimize_last_visible_leaves_nothing_focused(windows: WindowRegistry) -> None:
    a = windows.create("notes")
    windows.minimize(a)

    assert windows.focused_window_id is None
    assert _focused(windows) == []


def test_close_focused_window_refocuses_highest_visible(windows: WindowRegistry) -> None:
    a = windows.create("notes")
    b = windows.create("notes")
    c = windows.create("notes")
    windows.minimize(b)
    windows.focus(c)

    windows.close(c)

    assert c not in windows
    assert windows.focused_window_id == a
    assert windows.get(a).z_index > windows.get(b).z_index


def test_close_unfocused_window_keeps_focus(windows: WindowRegistry) -> None:
    a = windows.create("notes")
    b = windows.create("notes")

    windows.close(a)

    assert windows.focused_window_id == b
    assert len(windows) == 1


def test_maximize_toggles_and_focuses(windows: WindowRegistry) -> None:
    a = windows.create("notes")
    windows.create("notes")

    windows.maximize(a)
    assert windows.get(a).state == "maximized"
    assert windows.focused_window_id == a

    windows.maximize(a)
    assert windows.get(a).state == "normal"


def test_maximize_respects_capability(windows: WindowRegistry) -> None:
    a = windows.create("calculator", {"maximizable": False})
    windows.maximize(a)
    assert windows.get(a).state == "normal"


def test_restore_is_idempotent_and_always_normal(windows: WindowRegistry) -> None:
    a = windows.create("notes")
    windows.maximize(a)
    windows.minimize(a)

    windows.restore(a)
    first = windows.get(a).model_copy()
    windows.restore(a)

    assert windows.get(a).state == "normal"
    assert first.state == "normal"
    assert windows.focused_window_id == a


def test_focus_raises_z_index(windows: WindowRegistry) -> None:
    a = windows.create("notes")
    b = windows.create("notes")

    windows.focus(a)

    assert windows.get(a).z_index > windows.get(b).z_index
    assert _focused(windows) == [a]


def test_unknown_ids_are_ignored(bus: EventBus) -> None:
    events: list[dict[str, Any]] = []
    bus.subscribe(WINDOWS_CHANGED, events.append)
    registry = WindowRegistry(event_bus=bus)

    for op in (registry.close, registry.minimize, registry.maximize, registry.restore, registry.focus):
        op("window-missing")
    registry.move("window-missing", {"x": 1, "y": 1})
    registry.resize("window-missing", {"width": 10, "height": 10})

    assert events == []
    assert registry.focused_window_id is None


def test_move_and_resize_honour_capabilities(windows: WindowRegistry) -> None:
    fixed = windows.create("calculator", {"resizable": False, "movable": False, "position": {"x": 5, "y": 5}})

    windows.move(fixed, {"x": 100, "y": 100})
    windows.resize(fixed, {"width": 10, "height": 10})

    window = windows.get(fixed)
    assert (window.position.x, window.position.y) == (5, 5)
    assert window.size.width == 800


def test_invalid_geometry_is_rejected(windows: WindowRegistry) -> None:
    a = windows.create("notes")

    with pytest.raises(ValidationError):
        windows.resize(a, {"width": 0, "height": 100})
    with pytest.raises(ValidationError):
        windows.move(a, {"x": "left"})
    with pytest.raises(ValidationError):
        windows.set_state(a, "hidden")


def test_events_carry_debounce_by_kind(bus: EventBus) -> None:
    events: list[dict[str, Any]] = []
    bus.subscribe(WINDOWS_CHANGED, events.append)
    registry = WindowRegistry(event_bus=bus)

    wid = registry.create("notes")
    registry.move(wid, {"x": 3, "y": 4})

    assert events[0] == {"window_id": wid, "action": "create", "debounce": 1.0}
    assert events[1] == {"window_id": wid, "action": "move", "debounce": 2.0}


def test_compaction_after_threshold(windows: WindowRegistry) -> None:
    a = windows.create("notes")
    b = windows.create("notes")
    c = windows.create("notes")
    windows.minimize(b)

    windows.next_z_index = COMPACTION_THRESHOLD
    windows.focus(a)
    assert windows.get(a).z_index == COMPACTION_THRESHOLD

    windows.focus(c)

    ordered = sorted(windows.all(), key=lambda w: w.z_index)
    assert [w.id for w in ordered] == [b, a, c]
    assert [w.z_index for w in ordered] == [BASE_Z_INDEX, BASE_Z_INDEX + 1, BASE_Z_INDEX + 2]
    assert windows.next_z_index == BASE_Z_INDEX + 3
    assert windows.focused_window_id == c


def test_create_past_threshold_compacts_whole_stack(windows: WindowRegistry) -> None:
    a = windows.create("notes")
    b = windows.create("notes")
    c = windows.create("clock")
    windows.next_z_index = COMPACTION_THRESHOLD + 1

    d = windows.create("notes")

    ordered = sorted(windows.all(), key=lambda w: w.z_index)
    assert [w.id for w in ordered] == [a, b, c, d]
    assert all(w.z_index < 200 for w in ordered)
    assert windows.next_z_index < 200
    assert windows.focused_window_id == d


def test_repeated_focus_keeps_counter_bounded(windows: WindowRegistry) -> None:
    a = windows.create("notes")
    c = windows.create("notes")

    for _ in range(COMPACTION_THRESHOLD):
        windows.focus(a)
        windows.focus(c)

    assert windows.next_z_index <= COMPACTION_THRESHOLD + 1
    assert windows.get(c).z_index > windows.get(a).z_index
    assert windows.focused_window_id == c


def test_snapshot_round_trip_restores_focus_and_counter(windows: WindowRegistry) -> None:
    a = windows.create("notes")
    b = windows.create("clock")
    windows.focus(a)
    snapshot = windows.snapshot()

    restored = WindowRegistry()
    restored.load_snapshot(snapshot)

    assert restored.focused_window_id == a
    assert _focused(restored) == [a]
    assert restored.next_z_index == windows.next_z_index
    assert restored.get(b).app_id == "clock"
    assert set(snapshot["windows"][a]) >= {"appId", "zIndex", "position", "size"}


def test_reset_clears_windows_and_cascade(windows: WindowRegistry) -> None:
    windows.create("notes")
    windows.create("notes")

    windows.reset()

    assert len(windows) == 0
    assert windows.next_z_index == BASE_Z_INDEX
    first = windows.get(windows.create("notes")).position
    assert (first.x, first.y) == (80, 80)


def test_queries_by_app_and_visibility(windows: WindowRegistry) -> None:
    a = windows.create("notes")
    b = windows.create("notes")
    c = windows.create("clock")
    windows.minimize(a)

    assert {w.id for w in windows.windows_by_app("notes")} == {a, b}
    assert [w.id for w in windows.visible_windows()] == [b, c]
    assert [w.id for w in windows.minimized_windows()] == [a]


def test_rename_and_set_state(windows: WindowRegistry) -> None:
    a = windows.create("notes")

    windows.rename(a, "Shopping list")
    windows.set_state(a, "fullscreen")

    window = windows.get(a)
    assert window.title == "Shopping list"
    assert window.state == "fullscreen"


@pytest.mark.parametrize("seed", [1, 7, 42])
def test_random_sequences_keep_single_focus_and_distinct_z(seed: int) -> None:
    rng = random.Random(seed)
    registry = WindowRegistry()
    operations = ("create", "close", "minimize", "maximize", "restore", "focus")

    for _ in range(600):
        ids = [w.id for w in registry.all()]
        op = rng.choice(operations)
        if op == "create" or not ids:
            registry.create(rng.choice(("notes", "clock", "calculator")))
        else:
            getattr(registry, op)(rng.choice(ids))

        focused = _focused(registry)
        assert len(focused) <= 1
        assert focused == ([registry.focused_window_id] if registry.focused_window_id else [])
        z_indices = [w.z_index for w in registry.all()]
        assert len(set(z_indices)) == len(z_indices)
        assert registry.next_z_index > max(z_indices, default=BASE_Z_INDEX - 1)
