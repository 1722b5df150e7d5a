"""
isomapper: typed mapping of ISO 20022 cash management (camt.003-006, camt.053)
and payment initiation (pain.001, pain.002) messages between XML, a JSON
document tree and Python dataclasses.
"""

from .bond import CamtToBondMapper
from .camt import (
    CashManagementEndOfDayReport,
    CashManagementGetAccount,
    CashManagementGetTransaction,
    CashManagementReturnAccount,
    CashManagementReturnTransaction,
)
from .database.repository import MessageRepository
from .errors import (
    AnalyticsValidationError,
    InvalidCurrencyConsistencyError,
    InvalidFormatError,
    InvalidStructureError,
    InvalidXmlError,
    InvalidXmlNamespaceError,
    Iso20022Error,
)
from .exporter import Exporter
from .message import Iso20022Message, MessageType
from .pain import (
    ACHCreditPaymentInitiation,
    PaymentStatusReport,
    RTPCreditPaymentInitiation,
    SEPACreditPaymentInitiation,
    SWIFTCreditPaymentInitiation,
)
from .registry import MessageFactory, MessageRegistry, from_json, from_xml
from .validator import Validator

__all__ = [
    "Iso20022Message",
    "MessageType",
    "MessageRegistry",
    "MessageFactory",
    "from_xml",
    "from_json",
    "CashManagementGetAccount",
    "CashManagementReturnAccount",
    "CashManagementGetTransaction",
    "CashManagementReturnTransaction",
    "CashManagementEndOfDayReport",
    "SWIFTCreditPaymentInitiation",
    "SEPACreditPaymentInitiation",
    "ACHCreditPaymentInitiation",
    "RTPCreditPaymentInitiation",
    "PaymentStatusReport",
    "CamtToBondMapper",
    "Validator",
    "Exporter",
    "MessageRepository",
    "Iso20022Error",
    "InvalidXmlError",
    "InvalidFormatError",
    "InvalidXmlNamespaceError",
    "InvalidStructureError",
    "InvalidCurrencyConsistencyError",
    "AnalyticsValidationError",
]
