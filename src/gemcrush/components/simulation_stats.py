from dataclasses import dataclass

@dataclass(slots=True)
class SimulationStats:
    """Transient per-clone bookkeeping written by the lookahead simulators."""
    score_gained: int = 0
    cascade_count: int = 0
