"""
Constants for the CLOB Auth Manager

Single source of truth for protocol constants and tunable defaults.
Values that operators are expected to change are mirrored in
config.settings.AuthSettings and can be overridden from the environment.
"""

from typing import Final, Tuple


# ============================================================================
# 1. POLYMARKET API CONFIGURATION
# ============================================================================

# Polymarket CLOB API endpoint
CLOB_API_URL: Final[str] = "https://clob.polymarket.com"

# Polygon network configuration (Polymarket runs on Polygon)
POLYGON_CHAIN_ID: Final[int] = 137

# USDC (collateral) token address on Polygon
USDC_ADDRESS: Final[str] = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"

# Request timeout for API calls (seconds)
API_TIMEOUT_SEC: Final[int] = 30


# ============================================================================
# 2. SIGNATURE TYPES & AUTH MODES
# ============================================================================
# Polymarket validates requests against one of three signing schemes:
#
#   0 = EOA          (signer wallet holds the funds)
#   1 = POLY_PROXY   (Magic / email login proxy)
#   2 = GNOSIS_SAFE  (Safe holds the funds, EOA signs on its behalf)
#
# POLY_ADDRESS is ALWAYS the signer (EOA), even for Safe accounts.
# The funder (Safe) is only passed to the SDK and used for balance queries.
# ============================================================================

SIGNATURE_TYPE_EOA: Final[int] = 0
SIGNATURE_TYPE_POLY_PROXY: Final[int] = 1
SIGNATURE_TYPE_GNOSIS_SAFE: Final[int] = 2
VALID_SIGNATURE_TYPES: Final[Tuple[int, ...]] = (0, 1, 2)

AUTH_MODE_REGULAR: Final[str] = "regular"
AUTH_MODE_SAFE_PROXY: Final[str] = "safe_proxy"


# ============================================================================
# 3. DERIVE GATE (credential creation throttling)
# ============================================================================
# Creating L2 credentials is rate limited by the exchange and, for some
# accounts, not allowed at all. These are tunable defaults, not protocol
# values. The three tiers (block / window cap / cooldown) are fixed.
# ============================================================================

# Max derive attempts per rolling window
DERIVE_MAX_ATTEMPTS_PER_WINDOW: Final[int] = 2

# Window length (seconds)
DERIVE_WINDOW_SEC: Final[float] = 60.0

# Minimum spacing between two attempts (seconds)
DERIVE_COOLDOWN_SEC: Final[float] = 10.0

# Block after a definitive "could not create api key" refusal (30 minutes)
DERIVE_BLOCK_SEC: Final[float] = 30 * 60.0

# Substring (lowercased) of the exchange's permanent refusal message
DERIVE_REFUSAL_MARKER: Final[str] = "could not create api key"


# ============================================================================
# 4. BALANCE PROBE
# ============================================================================

BALANCE_ALLOWANCE_PATH: Final[str] = "/balance-allowance"

# Error bodies are truncated to this many characters before being surfaced
ERROR_BODY_MAX_CHARS: Final[int] = 300


# ============================================================================
# 5. LOGGING CONFIGURATION
# ============================================================================

# Logging level: 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'
LOG_LEVEL: Final[str] = 'INFO'

# Path to log file (ensure write permissions)
LOG_FILE_PATH: Final[str] = 'logs/clob_auth.log'

# Maximum log file size in bytes (10 MB - rotate after this size)
MAX_LOG_FILE_SIZE: Final[int] = 10 * 1024 * 1024

# Number of backup log files to keep
LOG_BACKUP_COUNT: Final[int] = 5

# Enable JSON structured logging for better parsing
STRUCTURED_LOGGING: Final[bool] = True

# Characters of a secret shown in logs before masking
MASK_KEEP_CHARS: Final[int] = 4
