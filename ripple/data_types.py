"""
Data types for broadcast indexing and scenario configuration.

Index records are built once per broadcast by spatial_index.py.
Configuration dataclasses are populated by loader.py from YAML files.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, NewType, Optional, Tuple, TYPE_CHECKING

from .constants import DEFAULT_GRID_SIZE, DEFAULT_PAYLOAD, MAX_BROADCAST_PASSES

if TYPE_CHECKING:
    from .geometry import Point


# Exact per-node identity (high cardinality) vs coarse cell identity.
# Never interchange the two even though both are ints.
PointId = NewType('PointId', int)
CellId = NewType('CellId', int)


# ============================================================================
# Spatial Index Records
# ============================================================================

@dataclass(frozen=True)
class PointDetail:
    """Scored neighbor of the broadcasting node"""
    point: Point
    point_id: PointId
    distance: float  # sqrt(d2(current) + d2(target)) / (edge_size * sqrt(2))
    angle: float  # angle(current->point, current->target) / pi
    min_point_id: CellId  # Cell this neighbor quantizes into


@dataclass(frozen=True)
class CellDetail:
    """Scored coarse cell holding at least one neighbor"""
    min_point: Point  # Cell representative on the coarse board
    min_point_id: CellId
    min_distance: float
    min_angle: float


class BroadcastLevel(IntEnum):
    """Traversal phase of a ripple broadcast"""
    LEVEL1 = 1  # Top candidate per cell, with dominance pruning
    LEVEL2 = 2  # Flood whatever level 1 left behind


class MatrixType(str, Enum):
    """Forwarding strategy used by every node in a simulation"""
    LINEAR = "linear"
    RIPPLE = "ripple"


# ============================================================================
# Scenario Configuration
# ============================================================================

Coord = Tuple[int, int]


@dataclass
class LinkRule:
    """Deterministic mesh connectivity"""
    radius: Optional[float] = None  # Link every pair within this distance
    pairs: List[Tuple[Coord, Coord]] = field(default_factory=list)  # Explicit links


@dataclass
class LossyLink:
    """Directed link that drops the first `drops` transmissions"""
    source: Coord
    target: Coord
    drops: int = 1


@dataclass
class BroadcastRoute:
    """Start node, end node, and payload of a broadcast"""
    start: Coord
    end: Coord
    data: str = DEFAULT_PAYLOAD


@dataclass
class MeshConfig:
    """Complete broadcast scenario"""
    mesh_id: str
    name: str
    edge_size: int
    links: LinkRule
    route: BroadcastRoute
    strategy: MatrixType = MatrixType.RIPPLE
    grid_size: int = DEFAULT_GRID_SIZE
    max_passes: int = MAX_BROADCAST_PASSES
    lossy_links: List[LossyLink] = field(default_factory=list)
    description: Optional[str] = None
