from .activity import ActivityEntry, ActivityType
from .auth import (
    ChangePasswordRequest,
    FirstUserRequest,
    LoginRequest,
    SessionRecord,
    SessionResponse,
    UserCredential,
)
from .backup import BackupDocument, BackupInfo, BackupSnapshot, ImportResult, StorageUsage
from .customer import Customer, CustomerCategory, CustomerCreate, CustomerOverview, CustomerUpdate
from .preferences import LedgerSettings, LedgerSettingsUpdate
from .report import (
    DashboardRead,
    LateSale,
    MonthlyTotals,
    ReportPeriod,
    ReportRead,
    SalesSummary,
    TopCustomer,
    UpcomingInstallment,
)
from .sale import (
    Installment,
    Payment,
    PaymentCreate,
    Sale,
    SaleCreate,
    SaleFilter,
    SaleRead,
    SaleStatus,
    SaleUpdate,
)
from .search import SearchResults

__all__ = [
    "ActivityEntry",
    "ActivityType",
    "ChangePasswordRequest",
    "FirstUserRequest",
    "LoginRequest",
    "SessionRecord",
    "SessionResponse",
    "UserCredential",
    "BackupDocument",
    "BackupInfo",
    "BackupSnapshot",
    "ImportResult",
    "StorageUsage",
    "Customer",
    "CustomerCategory",
    "CustomerCreate",
    "CustomerOverview",
    "CustomerUpdate",
    "LedgerSettings",
    "LedgerSettingsUpdate",
    "DashboardRead",
    "LateSale",
    "MonthlyTotals",
    "ReportPeriod",
    "ReportRead",
    "SalesSummary",
    "TopCustomer",
    "UpcomingInstallment",
    "Installment",
    "Payment",
    "PaymentCreate",
    "Sale",
    "SaleCreate",
    "SaleFilter",
    "SaleRead",
    "SaleStatus",
    "SaleUpdate",
    "SearchResults",
]
