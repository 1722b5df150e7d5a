from isomapper.pain.pain001 import (
    ACHCreditPaymentInitiation,
    PaymentInitiation,
    RTPCreditPaymentInitiation,
    SEPACreditPaymentInitiation,
    SWIFTCreditPaymentInitiation,
)
from isomapper.pain.pain002 import PaymentStatusReport

__all__ = [
    "PaymentInitiation",
    "SWIFTCreditPaymentInitiation",
    "SEPACreditPaymentInitiation",
    "ACHCreditPaymentInitiation",
    "RTPCreditPaymentInitiation",
    "PaymentStatusReport",
]
