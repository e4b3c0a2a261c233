from .activity import add_activity, list_activity
from .auth import (
    change_password,
    create_first_user,
    ensure_default_user,
    get_active_session,
    has_users,
    login,
    logout,
)
from .backup import (
    clear_all_data,
    create_backup,
    export_backup,
    export_csv,
    import_backup,
    list_backups,
    restore_backup,
    storage_usage,
)
from .customers import (
    create_customer,
    customer_overview,
    delete_customer,
    get_customer,
    list_customers,
    update_customer,
)
from .preferences import load_ledger_settings, update_ledger_settings
from .reports import get_dashboard, get_report, list_late_sales, list_upcoming_installments
from .sales import (
    create_sale,
    delete_sale,
    get_sale,
    list_sales,
    record_payment,
    sync_installments,
    update_sale,
)
from .search import global_search

__all__ = [
    "add_activity",
    "list_activity",
    "change_password",
    "create_first_user",
    "ensure_default_user",
    "get_active_session",
    "has_users",
    "login",
    "logout",
    "clear_all_data",
    "create_backup",
    "export_backup",
    "export_csv",
    "import_backup",
    "list_backups",
    "restore_backup",
    "storage_usage",
    "create_customer",
    "customer_overview",
    "delete_customer",
    "get_customer",
    "list_customers",
    "update_customer",
    "load_ledger_settings",
    "update_ledger_settings",
    "get_dashboard",
    "get_report",
    "list_late_sales",
    "list_upcoming_installments",
    "create_sale",
    "delete_sale",
    "get_sale",
    "list_sales",
    "record_payment",
    "sync_installments",
    "update_sale",
    "global_search",
]
