"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from decimal import Decimal

DEFAULT_HOURLY_RATE = Decimal("2")
DEFAULT_MAX_PAID_HOURS = Decimal("11.5")
MISSED_CHECKOUT_PAY_FACTOR = Decimal("0.5")

DEFAULT_COMPLETION_THRESHOLD = 100
DEFAULT_AUTO_APPROVE_MINUTES = 120
DEFAULT_LOCK_TTL_SECONDS = 300

DEFAULT_TOKEN_DECIMALS = 18
DEFAULT_SETTLEMENT_TIMEOUT_SECONDS = 30
DEFAULT_EXPLORER_HOST = "sepolia.etherscan.io"

DEFAULT_LIST_LIMIT = 200
