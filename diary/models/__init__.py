from .role import Role, ROLES
from .day import DayRecord
from .entry import DayEntry
from .agreement import Agreement, AgreementStatus
from .weekly_comment import WeeklyComment

__all__ = [
    "Role",
    "ROLES",
    "DayRecord",
    "DayEntry",
    "Agreement",
    "AgreementStatus",
    "WeeklyComment",
]
