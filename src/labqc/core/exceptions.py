"""Errors raised by the labqc statistics and limit services.

All errors subclass ValueError so callers that already guard statistical
input with ``except ValueError`` keep working.
"""


class EmptyDatasetError(ValueError):
    """Statistics were requested for zero observations."""

    def __init__(self, message: str = "Cannot calculate statistics for empty dataset"):
        super().__init__(message)


class InsufficientDataError(ValueError):
    """Too few in-control observations to establish control limits.

    Attributes:
        points_count: Number of usable observations supplied
        required_points: Minimum number required
    """

    def __init__(self, message: str, points_count: int, required_points: int):
        super().__init__(message)
        self.points_count = points_count
        self.required_points = required_points


class LimitsLockedError(ValueError):
    """A locked control limit set would be recomputed or locked again."""
