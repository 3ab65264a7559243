"""
Broadcast stepping harness.

Drives one broadcast across a whole mesh: every node that holds the message
pulls one forwarding target per step from its own strategy instance, and the
harness delivers (or drops) the message and reports the outcome back.

Metrics follow the matrix broadcast efficiency simulator:
- coverage = reached nodes / all nodes
- efficiency = reached nodes / transmissions (start node counts as one,
  dropped sends count too)
"""

import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Type

from .broadcast import BaseMatrixBroadcast, BroadcastMatrix
from .constants import (
    DEFAULT_GRID_SIZE,
    DEFAULT_MAX_STEPS,
    DEFAULT_PAYLOAD,
    MAX_BROADCAST_PASSES,
    STEP_SUMMARY_INTERVAL,
)
from .data_types import CellId, LossyLink, MatrixType, MeshConfig, PointId
from .geometry import Point
from .linear import LinearBroadcastMatrix
from .loader import load_mesh_config
from .mesh import Mesh
from .ripple_broadcast import RippleBroadcast, RippleBroadcastMatrix


MATRIX_CLASSES: Dict[MatrixType, Type[BroadcastMatrix]] = {
    MatrixType.LINEAR: LinearBroadcastMatrix,
    MatrixType.RIPPLE: RippleBroadcastMatrix,
}


# Performance profiling support (enabled via RIPPLE_PROFILE=1)
class _StepTimer:
    """
    Lightweight timer for profiling step sub-phases.

    Enabled when RIPPLE_PROFILE=1 environment variable is set.
    """
    def __init__(self):
        self.enabled = os.getenv('RIPPLE_PROFILE') == '1'
        self.timings = {}

    @contextmanager
    def time(self, name: str):
        """Context manager to time a code section."""
        if not self.enabled:
            yield
            return

        start = time.perf_counter_ns()
        yield
        elapsed_ms = (time.perf_counter_ns() - start) / 1_000_000
        self.timings[name] = self.timings.get(name, 0.0) + elapsed_ms

    def reset(self):
        self.timings.clear()


@dataclass
class StepResult:
    """Outcome of one simulation step"""
    step: int
    pulls: int  # Nodes that produced a forwarding target
    deliveries: int
    drops: int
    finished_nodes: int  # Nodes that ran out of targets this step
    coverage: float
    done: bool


class BroadcastSimulation:
    """
    Mesh-wide broadcast driven one step at a time.

    Each node gets its own broadcast instance when it first receives the
    message; all instances aim at the same end point.
    """

    def __init__(
        self,
        mesh: Mesh,
        start: Point,
        end: Point,
        data: Any = DEFAULT_PAYLOAD,
        matrix_type: MatrixType = MatrixType.RIPPLE,
        grid_size: int = DEFAULT_GRID_SIZE,
        max_passes: int = MAX_BROADCAST_PASSES,
        lossy_links: Optional[List[LossyLink]] = None
    ):
        """
        Args:
            mesh: Linked mesh (read-only here)
            start: Node that originates the message
            end: Broadcast destination
            data: Payload
            matrix_type: Forwarding strategy for every node
            grid_size: Cell size for ripple strategy
            max_passes: Retry pass bound per node
            lossy_links: Directed links that drop their first transmissions
        """
        self.mesh = mesh
        self.start = start
        self.end = end
        self.data = data
        self.matrix_type = MatrixType(matrix_type)
        self.grid_size = grid_size
        self.max_passes = max_passes

        self.lossy_links: List[LossyLink] = list(lossy_links or [])
        # (source_id, target_id) -> drops remaining, refilled by prepare()
        self._drops_remaining: Dict[Tuple[PointId, PointId], int] = {}

        self.broadcast_map: Dict[PointId, BaseMatrixBroadcast] = {}
        self.received: Dict[PointId, Any] = {}
        self.skipped_cells: Dict[PointId, List[CellId]] = {}
        self._finished: Set[PointId] = set()

        self.step_count = 0
        self.broadcast_count = 1  # Start node holds the message already
        self.drop_count = 0
        self.done = False
        self._timer = _StepTimer()
        self.last_profile: Dict[str, float] = {}

        self.prepare()

    @classmethod
    def from_config(cls, config: MeshConfig) -> 'BroadcastSimulation':
        mesh = Mesh.from_config(config)
        return cls(
            mesh=mesh,
            start=mesh.node_at(config.route.start),
            end=mesh.node_at(config.route.end),
            data=config.route.data,
            matrix_type=config.strategy,
            grid_size=config.grid_size,
            max_passes=config.max_passes,
            lossy_links=config.lossy_links,
        )

    @classmethod
    def from_file(cls, file_path: Path, schema_dir: Optional[Path] = None) -> 'BroadcastSimulation':
        return cls.from_config(load_mesh_config(file_path, schema_dir))

    def prepare(self):
        """Reset all state and hand the message to the start node."""
        self.broadcast_map = {}
        self.received = {}
        self.skipped_cells = {}
        self._finished = set()
        self.step_count = 0
        self.broadcast_count = 1
        self.drop_count = 0
        self.done = False

        self._drops_remaining = {}
        for lossy in self.lossy_links:
            key = (self.mesh.node_at(lossy.source).point_id, self.mesh.node_at(lossy.target).point_id)
            self._drops_remaining[key] = lossy.drops

        self.received[self.start.point_id] = self.data
        self._open_broadcast(self.start)

    def _open_broadcast(self, point: Point) -> BaseMatrixBroadcast:
        matrix = MATRIX_CLASSES[self.matrix_type](point, self.mesh.connected_points(point))
        options = {'max_passes': self.max_passes}
        if self.matrix_type is MatrixType.RIPPLE:
            options['grid_size'] = self.grid_size
        broadcast = matrix.do_broadcast(self.end, self.data, **options)

        if isinstance(broadcast, RippleBroadcast):
            skipped = self.skipped_cells.setdefault(point.point_id, [])
            broadcast.on_skip_min_point_id.subscribe(skipped.append)

        self.broadcast_map[point.point_id] = broadcast
        return broadcast

    def _take_drop(self, source: Point, target: Point) -> bool:
        key = (source.point_id, target.point_id)
        remaining = self._drops_remaining.get(key, 0)
        if remaining <= 0:
            return False
        self._drops_remaining[key] = remaining - 1
        return True

    @property
    def coverage(self) -> float:
        return len(self.broadcast_map) / len(self.mesh)

    @property
    def efficiency(self) -> float:
        """Reached nodes per transmission; dropped sends count as transmissions."""
        return len(self.broadcast_map) / self.broadcast_count

    @property
    def reached_end(self) -> bool:
        return self.end.point_id in self.received

    def step(self) -> StepResult:
        """
        Advance the broadcast by one step.

        Only nodes holding the message at the start of the step pull; nodes
        reached during the step start pulling next step.

        Raises:
            BroadcastNotConvergedError: a node exceeded its retry pass bound
        """
        self._timer.reset()
        self.step_count += 1
        total = len(self.mesh)
        pulls = deliveries = drops = finished = 0

        for from_id, from_broadcast in list(self.broadcast_map.items()):
            if from_id in self._finished:
                continue

            with self._timer.time('pull'):
                to_point = from_broadcast.get_next_point()
            if to_point is None:
                self._finished.add(from_id)
                finished += 1
                continue
            pulls += 1

            from_point = from_broadcast.current_point

            # Every send is a transmission, dropped or not, until every node holds the message
            if len(self.broadcast_map) != total:
                self.broadcast_count += 1

            if self._take_drop(from_point, to_point):
                from_broadcast.reject_point(to_point)
                self.drop_count += 1
                drops += 1
                continue

            with self._timer.time('deliver'):
                self.received[to_point.point_id] = from_broadcast.data
                to_broadcast = self.broadcast_map.get(to_point.point_id)
                if to_broadcast is None:
                    to_broadcast = self._open_broadcast(to_point)
                # Receiver knows the sender has it; sender gets the acknowledgment
                to_broadcast.resolve_point(from_point)
                from_broadcast.resolve_point(to_point)
            deliveries += 1

        if len(self.broadcast_map) == total or pulls == 0:
            self.done = True

        if self._timer.enabled:
            self.last_profile = self._timer.timings.copy()

        return StepResult(
            step=self.step_count,
            pulls=pulls,
            deliveries=deliveries,
            drops=drops,
            finished_nodes=finished,
            coverage=self.coverage,
            done=self.done,
        )

    def run(self, max_steps: int = DEFAULT_MAX_STEPS, summary_interval: int = 0) -> List[StepResult]:
        """
        Step until done or max_steps.

        Args:
            max_steps: Hard stop
            summary_interval: Print a summary every N steps (0 = silent)

        Returns:
            StepResult per executed step
        """
        results = []
        while not self.done and self.step_count < max_steps:
            results.append(self.step())
            if summary_interval and self.step_count % summary_interval == 0:
                self.print_step_summary()
        return results

    def get_stats(self) -> Dict:
        return {
            'step_count': self.step_count,
            'nodes': len(self.mesh),
            'reached': len(self.broadcast_map),
            'coverage': self.coverage,
            'transmissions': self.broadcast_count,
            'drops': self.drop_count,
            'efficiency': self.efficiency,
            'reached_end': self.reached_end,
            'skipped_cells': sum(len(cells) for cells in self.skipped_cells.values()),
            'done': self.done,
        }

    def print_step_summary(self):
        stats = self.get_stats()
        status = "done" if stats['done'] else "running"
        print(f"Step {stats['step_count']:5d} | "
              f"Reached: {stats['reached']:4d}/{stats['nodes']:<4d} "
              f"({stats['coverage'] * 100:6.2f}%) | "
              f"Efficiency: {stats['efficiency'] * 100:6.2f}% | "
              f"Drops: {stats['drops']:3d} | "
              f"Skipped cells: {stats['skipped_cells']:4d} | {status}")

        if self.last_profile:
            print(f"  [Profile] pull={self.last_profile.get('pull', 0.0):.3f} ms | "
                  f"deliver={self.last_profile.get('deliver', 0.0):.3f} ms")
