"""
Service-layer exceptions.

Services stay free of HTTP concerns; routers translate these into
HTTPException responses.
"""


class ServiceError(ValueError):
    """Base class for errors raised by hera_erp.services."""


class ValidationRuleError(ServiceError):
    """Input that a business rule rejects (bad account code, empty entries, ...)."""


class InsufficientHistoryError(ServiceError):
    """Not enough historical data to build a statistical model."""

    def __init__(self, data_points: int, minimum: int):
        self.data_points = data_points
        self.minimum = minimum
        super().__init__(f"Insufficient history: {data_points} data points, {minimum} required")
