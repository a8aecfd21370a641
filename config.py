import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./billing.db")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    API_RELOAD = bool(data.get("API_RELOAD", False))
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    AUTH_DISABLED = bool(data.get("AUTH_DISABLED", False))
    ENABLE_LOGGING_MIDDLEWARE = bool(data.get("ENABLE_LOGGING_MIDDLEWARE", 1))

    # Payment gateway (only the gateway adapter reads these)
    STRIPE_SECRET_KEY = data.get("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = data.get("STRIPE_WEBHOOK_SECRET", "")
    WEBHOOK_TOLERANCE_SECONDS = data.get("WEBHOOK_TOLERANCE_SECONDS", 300)
    STATEMENT_DESCRIPTOR = data.get("STATEMENT_DESCRIPTOR", "CONSULTING")

    # Fees (amounts in minor currency units)
    DEFAULT_CURRENCY = data.get("DEFAULT_CURRENCY", "USD")
    PLATFORM_FEE_PERCENTAGE = data.get("PLATFORM_FEE_PERCENTAGE", 15)
    GATEWAY_FEE_PERCENTAGE = data.get("GATEWAY_FEE_PERCENTAGE", 2.9)
    GATEWAY_FIXED_FEE = data.get("GATEWAY_FIXED_FEE", 30)

    # Free trial
    FREE_TRIAL_DURATION_MINUTES = data.get("FREE_TRIAL_DURATION_MINUTES", 15)
    FREE_TRIAL_EXPIRY_DAYS = data.get("FREE_TRIAL_EXPIRY_DAYS", 30)

    # Optimistic concurrency on client credit accounts
    OPTIMISTIC_RETRY_ATTEMPTS = data.get("OPTIMISTIC_RETRY_ATTEMPTS", 3)

    # Consultant payouts
    PAYOUT_SCHEDULER_ENABLED = bool(data.get("PAYOUT_SCHEDULER_ENABLED", True))
    PAYOUT_SCHEDULE = data.get("PAYOUT_SCHEDULE", "weekly")  # weekly, biweekly, monthly
    MINIMUM_PAYOUT_AMOUNT = data.get("MINIMUM_PAYOUT_AMOUNT", 5000)  # minor units
    PAYOUT_INTERVAL_SECONDS = data.get("PAYOUT_INTERVAL_SECONDS", 86400)

    # Refund clawback repair
    REFUND_RECONCILIATION_ENABLED = bool(data.get("REFUND_RECONCILIATION_ENABLED", True))
    REFUND_RECONCILIATION_INTERVAL_SECONDS = data.get("REFUND_RECONCILIATION_INTERVAL_SECONDS", 86400)

    # Credit lot expiry
    CREDIT_EXPIRY_ENABLED = bool(data.get("CREDIT_EXPIRY_ENABLED", True))
    CREDIT_EXPIRY_INTERVAL_SECONDS = data.get("CREDIT_EXPIRY_INTERVAL_SECONDS", 86400)
