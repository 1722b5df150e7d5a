from typing import Any, Dict, List, Optional


class Iso20022Error(Exception):
    """
    Base class for every error raised by isomapper.
    """


class InvalidXmlError(Iso20022Error):
    """
    The payload is not XML, or carries no recognizable ``Document`` root.
    """


class InvalidFormatError(Iso20022Error):
    """
    The payload is not in the expected textual format (e.g. undecodable JSON).
    """


class InvalidXmlNamespaceError(Iso20022Error):
    """
    The document namespace does not start with the URN prefix expected by the mapper.
    """


class InvalidStructureError(Iso20022Error):
    """
    A required node is missing or malformed for the message type being mapped.
    """


class InvalidCurrencyConsistencyError(InvalidStructureError):
    """
    Payment instructions grouped in one initiation carry different currencies.
    """


class AnalyticsValidationError(Iso20022Error):
    """
    Hard validation errors raised while building analytics records.

    Args:
        message: Human readable summary.
        errors: Structured issues, each a dict with ``field`` and ``message`` keys.
    """

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []
