"""
Tests for the ripple broadcast state machine.

Covers:
- Level 1 yields at most one candidate per cell
- Level 2 floods the remainder, then the sequence ends (empty retry queue)
- Resolution tracking (cell ids) and unknown-point handling
- Dominance pruning: exact predicate, skip signal, no implicit resolution
- Retry passes and the non-convergence bound
"""

import pytest

from ripple.broadcast import BroadcastNotConvergedError
from ripple.data_types import BroadcastLevel, CellDetail, CellId
from ripple.geometry import Point
from ripple.mesh import Mesh
from ripple.ripple_broadcast import RippleBroadcast, RippleBroadcastMatrix, is_dominated


def make_broadcast(current, neighbors, end, grid_size=4, max_passes=64) -> RippleBroadcast:
    matrix = RippleBroadcastMatrix(current, neighbors)
    return matrix.do_broadcast(end, "payload", grid_size=grid_size, max_passes=max_passes)


def diagonal_broadcast(**kwargs) -> RippleBroadcast:
    """Current (0,0), target (2,2), three neighbors sharing one cell."""
    neighbors = [Point(1, 0, 3), Point(0, 1, 3), Point(1, 1, 3)]
    return make_broadcast(Point(0, 0, 3), neighbors, Point(2, 2, 3), **kwargs)


def dominance_broadcast() -> RippleBroadcast:
    """
    grid_size=1 so every neighbor is its own cell (cell scores == point scores).

    Current (0,0), target (4,0) on a 10x10 board:
    - R (1,0): angle 0,      distance sqrt(10)   -> ranked first
    - C (2,1): angle ~0.148, distance sqrt(10)   -> dominated by R
    - D (0,2): angle 0.5,    distance sqrt(24)   -> farther, not dominated
    """
    neighbors = [Point(0, 2, 10), Point(2, 1, 10), Point(1, 0, 10)]
    return make_broadcast(Point(0, 0, 10), neighbors, Point(4, 0, 10), grid_size=1)


def drain(broadcast, limit=1000):
    points = []
    for _ in range(limit):
        point = broadcast.pull_next()
        if point is None:
            return points
        points.append(point)
    raise AssertionError("broadcast did not terminate")


def test_first_pull_is_diagonal_neighbor():
    broadcast = diagonal_broadcast()
    assert broadcast.pull_next() == Point(1, 1, 3)
    assert broadcast.current_level == BroadcastLevel.LEVEL1


def test_single_cycle_then_end_of_sequence():
    broadcast = diagonal_broadcast()

    points = drain(broadcast)

    assert points == [Point(1, 1, 3), Point(1, 0, 3), Point(0, 1, 3)]
    assert broadcast.current_level == BroadcastLevel.LEVEL2
    assert broadcast.passes == 1
    # Exhausted sequences stay exhausted
    assert broadcast.pull_next() is None
    assert broadcast.get_next_point() is None


def test_iterator_protocol_matches_pull_next():
    assert list(diagonal_broadcast()) == drain(diagonal_broadcast())


def test_level1_yields_at_most_one_point_per_cell():
    mesh = Mesh(9)
    mesh.link_within(3.0)
    current = mesh.node(4, 4)
    broadcast = make_broadcast(current, mesh.connected_points(current), mesh.node(8, 8), grid_size=2)

    level1_cells = []
    while True:
        point = broadcast.pull_next()
        if point is None or broadcast.current_level != BroadcastLevel.LEVEL1:
            break
        level1_cells.append(point.cell_id(2))

    assert len(level1_cells) == len(set(level1_cells))
    assert len(level1_cells) == len(broadcast.index.sorted_cells)
    # Level 1 order follows the global cell ranking
    assert level1_cells == [c.min_point_id for c in broadcast.index.sorted_cells]


def test_every_neighbor_yielded_exactly_once_without_retries():
    mesh = Mesh(9)
    mesh.link_within(2.5)
    current = mesh.node(3, 5)
    neighbors = mesh.connected_points(current)
    broadcast = make_broadcast(current, neighbors, mesh.node(8, 0), grid_size=3)

    points = drain(broadcast)

    assert len(points) == len(set(points))
    assert set(points) == set(neighbors)


def test_resolve_point_marks_cell():
    broadcast = diagonal_broadcast()
    p = Point(1, 0, 3)
    cell_id = p.cell_id(4)

    assert not broadcast.has_resolved_min_point_id(cell_id)
    assert broadcast.resolve_point(p) is True
    assert broadcast.has_resolved_min_point_id(cell_id)
    assert broadcast.has_resolved_point(p)

    # Second resolution is a no-op for the base, cell stays resolved
    assert broadcast.resolve_point(p) is False
    assert broadcast.has_resolved_min_point_id(cell_id)


def test_resolve_unknown_point_is_ignored():
    broadcast = diagonal_broadcast()
    stranger = Point(2, 2, 3)

    assert broadcast.resolve_point(stranger) is False
    assert not broadcast.has_resolved_point(stranger)
    assert not broadcast.has_resolved_min_point_id(stranger.cell_id(4))


def test_resolved_cell_is_skipped_and_signalled():
    broadcast = diagonal_broadcast()
    skipped = []
    broadcast.on_skip_min_point_id.subscribe(skipped.append)

    broadcast.resolve_point(Point(1, 1, 3))
    points = drain(broadcast)

    assert skipped == [CellId(0)]
    # Level 1 skipped the only cell; level 2 floods the unresolved rest
    assert points == [Point(1, 0, 3), Point(0, 1, 3)]


def test_dominated_cell_is_skipped_but_not_resolved():
    broadcast = dominance_broadcast()
    r, c, d = Point(1, 0, 10), Point(2, 1, 10), Point(0, 2, 10)
    assert [cell.min_point for cell in broadcast.index.sorted_cells] == [r, c, d]

    skipped = []
    broadcast.on_skip_min_point_id.subscribe(skipped.append)
    broadcast.resolve_point(r)

    assert broadcast.pull_next() == d
    assert skipped == [r.cell_id(1), c.cell_id(1)]
    assert not broadcast.has_resolved_min_point_id(c.cell_id(1))

    # Level 2 still reaches the dominated cell's neighbor; R is resolved
    assert broadcast.pull_next() == c
    assert broadcast.current_level == BroadcastLevel.LEVEL2
    assert broadcast.pull_next() is None


def test_without_skip_reference_nothing_is_pruned():
    broadcast = dominance_broadcast()
    skipped = []
    broadcast.on_skip_min_point_id.subscribe(skipped.append)

    points = drain(broadcast)

    assert skipped == []
    assert points == [Point(1, 0, 10), Point(2, 1, 10), Point(0, 2, 10)]


def test_dominance_predicate_requires_both_conditions():
    reference = CellDetail(Point(0, 0, 4), CellId(0), min_distance=0.5, min_angle=0.2)

    def cell(distance, angle):
        return CellDetail(Point(1, 1, 4), CellId(5), min_distance=distance, min_angle=angle)

    assert is_dominated(cell(0.5, 0.2), reference)      # equal on both
    assert is_dominated(cell(0.4, 0.3), reference)      # nearer, worse angle
    assert not is_dominated(cell(0.6, 0.3), reference)  # angle holds, distance fails
    assert not is_dominated(cell(0.4, 0.1), reference)  # distance holds, angle fails


def test_dominance_only_looks_forward():
    """A(d=0.2, a=0.1) then B(d=0.1, a=0.05): neither prunes the other."""
    a = CellDetail(Point(0, 0, 4), CellId(0), min_distance=0.2, min_angle=0.1)
    b = CellDetail(Point(1, 0, 4), CellId(1), min_distance=0.1, min_angle=0.05)

    assert not is_dominated(b, a)
    assert not is_dominated(a, b)


def test_rejected_point_is_retried_in_next_pass():
    broadcast = diagonal_broadcast()

    assert broadcast.pull_next() == Point(1, 1, 3)
    assert broadcast.reject_point(Point(1, 1, 3)) is True
    assert broadcast.pull_next() == Point(1, 0, 3)
    broadcast.resolve_point(Point(1, 0, 3))
    assert broadcast.pull_next() == Point(0, 1, 3)
    broadcast.resolve_point(Point(0, 1, 3))

    # Pass 2: the shared cell is resolved now, level 2 retries the rejection
    assert broadcast.pull_next() == Point(1, 1, 3)
    assert broadcast.passes == 2
    assert broadcast.current_level == BroadcastLevel.LEVEL2

    broadcast.resolve_point(Point(1, 1, 3))
    assert broadcast.rejected_point_ids == frozenset()
    assert broadcast.pull_next() is None


def test_restart_resets_level_to_one():
    broadcast = diagonal_broadcast()
    for _ in range(3):
        broadcast.reject_point(broadcast.pull_next())
    assert broadcast.current_level == BroadcastLevel.LEVEL2

    # First pull of pass 2 comes from level 1 again (cell not resolved)
    assert broadcast.pull_next() == Point(1, 1, 3)
    assert broadcast.current_level == BroadcastLevel.LEVEL1
    assert broadcast.passes == 2


def test_never_draining_retry_queue_raises():
    broadcast = diagonal_broadcast(max_passes=3)

    with pytest.raises(BroadcastNotConvergedError):
        for _ in range(100):
            broadcast.reject_point(broadcast.pull_next())

    assert broadcast.passes == 3


def test_retry_of_unreachable_point_raises_instead_of_hanging():
    broadcast = diagonal_broadcast(max_passes=5)
    for p in [Point(1, 0, 3), Point(0, 1, 3), Point(1, 1, 3)]:
        broadcast.resolve_point(p)
    broadcast.reject_point(Point(2, 2, 3))  # Not a neighbor, never yielded

    with pytest.raises(BroadcastNotConvergedError, match="did not converge"):
        broadcast.pull_next()


def test_reject_resolved_point_is_refused():
    broadcast = diagonal_broadcast()
    broadcast.resolve_point(Point(1, 0, 3))
    assert broadcast.reject_point(Point(1, 0, 3)) is False
    assert broadcast.rejected_point_ids == frozenset()


def test_no_neighbors_ends_immediately():
    broadcast = make_broadcast(Point(0, 0, 3), [], Point(2, 2, 3))
    assert broadcast.pull_next() is None


def test_invalid_max_passes():
    with pytest.raises(ValueError):
        diagonal_broadcast(max_passes=0)
