"""
Central configuration constants for ripple broadcast.

Defines default values, weights, and bounds used across multiple modules.
"""

# ============================================================================
# Spatial Index Configuration
# ============================================================================

# Coarse cell edge length (in lattice units) used to quantize neighbors
DEFAULT_GRID_SIZE = 4

# Ranking weights: combined score = angle * 6 + distance * 4 (angle dominates)
ANGLE_WEIGHT = 6.0
DISTANCE_WEIGHT = 4.0


# ============================================================================
# Broadcast Traversal Configuration
# ============================================================================

# Maximum Level1+Level2 passes per broadcast before giving up.
# A pass only repeats while the retry queue is non-empty.
MAX_BROADCAST_PASSES = 64


# ============================================================================
# Simulation Configuration
# ============================================================================

# Hard stop for BroadcastSimulation.run() (steps, not pulls)
DEFAULT_MAX_STEPS = 10_000

# Default step summary interval (print every N steps)
STEP_SUMMARY_INTERVAL = 10

# Payload used when a data pack does not name one
DEFAULT_PAYLOAD = "ripple"
