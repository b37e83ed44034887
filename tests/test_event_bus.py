from __future__ import annotations

import pytest


def test_listen_delivers_only_matching_names(bus):
    got = []
    bus.listen("a", got.append)

    bus.emit("a", 1)
    bus.emit("b", 2)
    bus.emit("a", {"x": 3})

    assert got == [1, {"x": 3}]


def test_group_listener_receives_name(bus):
    got = []
    bus.listen(["a", "b"], lambda name, payload: got.append((name, payload)), with_name=True)

    bus.emit("b", None)
    bus.emit("c", None)
    bus.emit("a", "p")

    assert got == [("b", None), ("a", "p")]


def test_release_stops_delivery_and_is_idempotent(bus):
    got = []
    sub = bus.listen("a", got.append)
    assert bus.listener_count == 1

    sub.release()
    sub.release()
    bus.emit("a", 1)

    assert got == []
    assert sub.active is False
    assert bus.listener_count == 0


def test_subscription_as_context_manager(bus):
    got = []
    with bus.listen("a", got.append) as sub:
        bus.emit("a", 1)
        assert sub.active

    bus.emit("a", 2)
    assert got == [1]


def test_listen_requires_a_name(bus):
    with pytest.raises(ValueError):
        bus.listen([], lambda _p: None)
