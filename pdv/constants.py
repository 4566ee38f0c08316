# Tables captured by a snapshot, parents before children.
# Restore deletes in reverse order and inserts in this order.
SNAPSHOT_TABLES = (
    "users",
    "products",
    "clients",
    "accounts",
    "account_payments",
    "movements",
)

SNAPSHOT_VERSION = "1.0"
BACKUP_ACTIONS = ("create", "restore")
BACKUP_FILENAME_PREFIX = "backup_"
BACKUP_FILENAME_SUFFIX = ".json"
BACKUP_TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S-%fZ"

ACCOUNT_TYPES = ("pagar", "receber")
ACCOUNT_STATUSES = ("pendente", "pago", "vencido", "parcialmente_pago")
MOVEMENT_TYPES = ("entrada", "saida")

SESSION_TOKEN_TYPE = "session"
INSECURE_DEFAULT_SECRET = "dev-secret-please-change"
