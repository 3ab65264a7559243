"""
Ripple Broadcast

A deterministic, headless simulator for spatial greedy broadcast in a
point-to-point mesh. Each node ranks its neighbors by distance and angle
toward a target, groups them into coarse grid cells, and forwards one hop
at a time while pruning cells that are already covered.

Architecture: the strategy is a pull-driven state machine. The stepping
harness (simulation.py) decides when to pull.
"""

__version__ = "0.1.0"
