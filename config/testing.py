import os

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "settlement_test_db"),
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))

HOURLY_RATE = "2"
MAX_PAID_HOURS = "11.5"
COMPLETION_THRESHOLD = 100
AUTO_APPROVE_MINUTES = 120
LOCK_TTL_SECONDS = 30

SETTLEMENT_GATEWAY_URL = os.getenv("SETTLEMENT_GATEWAY_URL", "http://relay.test")
SETTLEMENT_API_TOKEN = ""
SETTLEMENT_TIMEOUT_SECONDS = 5.0
TOKEN_DECIMALS = 18
EXPLORER_HOST = "sepolia.etherscan.io"
