"""
Mesh model: a full lattice of nodes with deterministic links.

Nodes sit on every integer position of an edge_size x edge_size board.
Links are bidirectional and kept in insertion order, which is the
neighbor iteration order every broadcast strategy sees.
"""

from typing import Dict, Iterable, Iterator, List, Tuple

import numpy as np

from .data_types import Coord, LinkRule, MeshConfig, PointId
from .geometry import Point


class Mesh:
    """
    Lattice of Points with an adjacency map keyed by PointId.

    Radius linking builds the undirected edge set at once: all canonical
    (a < b) pairs within range, linked in row-major order.
    """

    def __init__(self, edge_size: int):
        if edge_size < 1:
            raise ValueError(f"edge_size must be >= 1, got {edge_size}")
        self.edge_size = edge_size
        self._nodes: List[Point] = [
            Point(x, y, edge_size)
            for y in range(edge_size)
            for x in range(edge_size)
        ]
        self._links: Dict[PointId, Dict[PointId, Point]] = {
            node.point_id: {} for node in self._nodes
        }

    @classmethod
    def from_config(cls, config: MeshConfig) -> 'Mesh':
        mesh = cls(config.edge_size)
        mesh.apply_link_rule(config.links)
        return mesh

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Point]:
        return iter(self._nodes)

    def node(self, x: int, y: int) -> Point:
        if not (0 <= x < self.edge_size and 0 <= y < self.edge_size):
            raise ValueError(f"({x}, {y}) is outside a {self.edge_size}x{self.edge_size} mesh")
        return self._nodes[y * self.edge_size + x]

    def node_at(self, coord: Coord) -> Point:
        return self.node(int(coord[0]), int(coord[1]))

    def link(self, a: Point, b: Point) -> bool:
        """
        Connect a and b in both directions.

        Returns:
            False if the link already existed
        """
        if a.point_id == b.point_id:
            raise ValueError(f"Cannot link {a} to itself")
        if b.point_id in self._links[a.point_id]:
            return False
        self._links[a.point_id][b.point_id] = b
        self._links[b.point_id][a.point_id] = a
        return True

    def link_within(self, radius: float) -> int:
        """
        Link every pair of nodes at Euclidean distance <= radius.

        Returns:
            Number of new links
        """
        if radius <= 0 or len(self._nodes) < 2:
            return 0

        positions = np.array([node.position for node in self._nodes], dtype=np.float64)
        edge_a, edge_b = np.triu_indices(len(positions), k=1)
        diff = positions[edge_a] - positions[edge_b]
        within = np.einsum('ij,ij->i', diff, diff) <= radius * radius + 1e-9

        created = 0
        for a, b in zip(edge_a[within], edge_b[within]):
            if self.link(self._nodes[a], self._nodes[b]):
                created += 1
        return created

    def link_pairs(self, pairs: Iterable[Tuple[Coord, Coord]]) -> int:
        created = 0
        for coord_a, coord_b in pairs:
            if self.link(self.node_at(coord_a), self.node_at(coord_b)):
                created += 1
        return created

    def apply_link_rule(self, rule: LinkRule) -> int:
        created = 0
        if rule.radius is not None:
            created += self.link_within(rule.radius)
        created += self.link_pairs(rule.pairs)
        return created

    def connected_points(self, point: Point) -> Tuple[Point, ...]:
        return tuple(self._links[point.point_id].values())

    @property
    def link_count(self) -> int:
        return sum(len(peers) for peers in self._links.values()) // 2
