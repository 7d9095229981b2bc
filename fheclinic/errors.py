"""
Exceptions raised by the FHE clinic simulation.
"""


class FheClinicError(Exception):
    """Base class for all simulation errors."""
    pass


class PayloadShapeError(FheClinicError, ValueError):
    """
    Raised when a value cannot be treated as a RawPayload variant.

    Transforms fail fast on these instead of computing on a value of the
    wrong shape.
    """
    pass
