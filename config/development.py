import os

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "settlement_db"),
}

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))

# Payroll / review rules
HOURLY_RATE = os.getenv("HOURLY_RATE", "2")
MAX_PAID_HOURS = os.getenv("MAX_PAID_HOURS", "11.5")
COMPLETION_THRESHOLD = int(os.getenv("COMPLETION_THRESHOLD", "100"))
AUTO_APPROVE_MINUTES = int(os.getenv("AUTO_APPROVE_MINUTES", "120"))
LOCK_TTL_SECONDS = int(os.getenv("LOCK_TTL_SECONDS", "300"))

# Settlement relay (testnet by default)
SETTLEMENT_GATEWAY_URL = os.getenv("SETTLEMENT_GATEWAY_URL", "http://localhost:8545/relay")
SETTLEMENT_API_TOKEN = os.getenv("SETTLEMENT_API_TOKEN", "")
SETTLEMENT_TIMEOUT_SECONDS = float(os.getenv("SETTLEMENT_TIMEOUT_SECONDS", "30"))
TOKEN_DECIMALS = int(os.getenv("TOKEN_DECIMALS", "18"))
EXPLORER_HOST = os.getenv("EXPLORER_HOST", "sepolia.etherscan.io")
