from .stats import SessionStats, compute_stats

__all__ = ["SessionStats", "compute_stats"]
