"""
Tests for the linear (flood) baseline strategy.
"""

import pytest

from ripple.broadcast import BroadcastNotConvergedError
from ripple.geometry import Point
from ripple.linear import LinearBroadcast, LinearBroadcastMatrix


def make_linear(max_passes=64) -> LinearBroadcast:
    neighbors = [Point(1, 0, 3), Point(0, 1, 3), Point(1, 1, 3)]
    return LinearBroadcastMatrix(Point(0, 0, 3), neighbors).do_broadcast(
        Point(2, 2, 3), "payload", max_passes=max_passes
    )


def test_yields_in_connection_order():
    assert list(make_linear()) == [Point(1, 0, 3), Point(0, 1, 3), Point(1, 1, 3)]


def test_skips_resolved_points():
    broadcast = make_linear()
    broadcast.resolve_point(Point(0, 1, 3))
    assert list(broadcast) == [Point(1, 0, 3), Point(1, 1, 3)]


def test_rejected_point_retried_next_pass():
    broadcast = make_linear()
    first = broadcast.pull_next()
    broadcast.reject_point(first)
    broadcast.resolve_point(broadcast.pull_next())
    broadcast.resolve_point(broadcast.pull_next())

    assert broadcast.pull_next() == first
    assert broadcast.passes == 2
    broadcast.resolve_point(first)
    assert broadcast.pull_next() is None


def test_pass_bound():
    broadcast = make_linear(max_passes=2)
    with pytest.raises(BroadcastNotConvergedError):
        for _ in range(50):
            broadcast.reject_point(broadcast.pull_next())


def test_grid_size_is_not_a_linear_option():
    matrix = LinearBroadcastMatrix(Point(0, 0, 3), [Point(1, 0, 3)])
    with pytest.raises(TypeError):
        matrix.do_broadcast(Point(2, 2, 3), "payload", grid_size=4)
