from .auth import User, SessionToken
from .inventory import InventoryItem, Warehouse, StockLevel, StockMovement
from .finance import (
    CashEntry, CashDailySummary, CashUserClosure, PayrollAccrual,
    PayrollPeriod, PayrollItem, Loan, InternalDebt,
)
from .customers import InternetPlan, Customer, CustomerConflict
from .attendance import AttendanceRecord, DailyAttendance
from .tasks import Task
from .events import ActivityEvent

__all__ = [
    'User', 'SessionToken',
    'InventoryItem', 'Warehouse', 'StockLevel', 'StockMovement',
    'CashEntry', 'CashDailySummary', 'CashUserClosure', 'PayrollAccrual',
    'PayrollPeriod', 'PayrollItem', 'Loan', 'InternalDebt',
    'InternetPlan', 'Customer', 'CustomerConflict',
    'AttendanceRecord', 'DailyAttendance',
    'Task',
    'ActivityEvent',
]
