"""Exceptions raised by the forecasting core."""


class XtockError(Exception):
    """Base exception for forecasting errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict | None = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class NoSalesDataError(XtockError):
    """Raised when forecasting is requested with no sales records at all."""

    def __init__(self, message: str = "No sales data provided for forecasting"):
        super().__init__(message, code="NO_SALES_DATA")


class InvalidSalesRecordError(XtockError, ValueError):
    """Raised when a sales record violates its invariants."""

    def __init__(self, message: str):
        super().__init__(message, code="INVALID_SALES_RECORD")
