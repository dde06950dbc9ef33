"""
Exception hierarchy for instance construction.
Solver-side failures are not exceptions; they come back as SolverStatus values.
"""


class AllocationError(Exception):
    """Base class for allocation errors."""


class DataError(AllocationError):
    """Invalid growth percentage or instance data (negative / non-finite values)."""


class MalformedInstanceError(DataError):
    """Empty workload or pool sequence, or numbers a formulation cannot use."""
