"""
Geometry helpers for lattice points and broadcast scoring.

This module provides the position type used by every broadcast strategy
plus small, focused vector helpers with no broadcast state. All vector
math operates on float64 numpy arrays.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from .data_types import CellId, PointId


def angle_between(a: np.ndarray, b: np.ndarray) -> float:
    """
    Return the angle between vectors A and B in radians, in [0, pi].

    A zero-length vector on either side is treated as perfectly aligned
    and yields 0.0.

    Parameters
    - a: (2,) vector
    - b: (2,) vector

    Returns
    - angle as float64
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)

    if not np.any(a) or not np.any(b):
        return 0.0

    # atan2 of |cross| and dot is exact for parallel vectors of any length
    cross = a[0] * b[1] - a[1] * b[0]
    angle = np.arctan2(abs(cross), np.dot(a, b))
    return float(np.clip(angle, 0.0, np.pi))


def distance_pow2(a: np.ndarray, b: np.ndarray) -> float:
    """Squared Euclidean distance between two positions."""
    diff = np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)
    return float(np.dot(diff, diff))


@dataclass(frozen=True)
class Point:
    """
    Immutable lattice position on an edge_size x edge_size board.

    Attributes:
        x: Column index (0 <= x < edge_size)
        y: Row index (0 <= y < edge_size)
        edge_size: Board edge length, used for identity and normalization
    """
    x: int
    y: int
    edge_size: int

    @property
    def point_id(self) -> PointId:
        """Exact identity: row-major index on the board."""
        return PointId(self.y * self.edge_size + self.x)

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=np.float64)

    def make_vector(self, other: Point) -> np.ndarray:
        """Vector from this point to other."""
        return other.position - self.position

    def distance_pow2(self, other: Point) -> float:
        return distance_pow2(self.position, other.position)

    def min_point(self, grid_size: int) -> Point:
        """
        Quantize this point into its coarse grid cell.

        The representative lives on a coarser board whose edge is
        ceil(edge_size / grid_size), so its point_id is a compact cell index.

        Args:
            grid_size: Cell edge length in lattice units (>= 1)

        Returns:
            Representative point of the cell on the coarse board
        """
        if grid_size < 1:
            raise ValueError(f"grid_size must be >= 1, got {grid_size}")
        return Point(
            self.x // grid_size,
            self.y // grid_size,
            math.ceil(self.edge_size / grid_size),
        )

    def cell_id(self, grid_size: int) -> CellId:
        return CellId(self.min_point(grid_size).point_id)

    def __repr__(self) -> str:
        return f"Point({self.x}, {self.y})"
