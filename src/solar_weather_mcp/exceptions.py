from typing import Optional, Tuple


class SourceError(Exception):
    """Base class for failures of a single weather source"""


class SourceUnavailableError(SourceError):
    """Provider could not be reached, timed out or answered with a non-success status"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SourceSchemaError(SourceError):
    """Provider answered with a payload that could not be normalized"""


class PlausibilityError(SourceError):
    """A reading field lies outside its physical sanity bounds"""

    def __init__(self, field: str, value: float, bounds: Tuple[float, float]):
        self.field = field
        self.value = value
        self.bounds = bounds
        super().__init__(f"ANOMALY_DETECTED: {field}={value} outside [{bounds[0]}, {bounds[1]}]")


class InvalidCoordinatesError(ValueError):
    """Caller supplied missing or out-of-range coordinates"""
