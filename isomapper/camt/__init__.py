from isomapper.camt.camt003 import CashManagementGetAccount
from isomapper.camt.camt004 import CashManagementReturnAccount
from isomapper.camt.camt005 import CashManagementGetTransaction
from isomapper.camt.camt006 import CashManagementReturnTransaction
from isomapper.camt.camt053 import CashManagementEndOfDayReport

__all__ = [
    "CashManagementGetAccount",
    "CashManagementReturnAccount",
    "CashManagementGetTransaction",
    "CashManagementReturnTransaction",
    "CashManagementEndOfDayReport",
]
