"""
HTLC SDK - Constants

Centralized configuration constants for the SDK.
"""

# =============================================================================
# Transaction Fees and Amounts
# =============================================================================

# Fixed fee for the funding transaction in satoshis
FUNDING_FEE_SATS = 1000

# Fixed fee for claim/refund transactions in satoshis
REDEEM_FEE_SATS = 1000

# Outputs at or below this value are not created (change is folded into fee)
DUST_THRESHOLD_SATS = 546

# Funding transactions always place the HTLC output first
HTLC_OUTPUT_INDEX = 0

# Redemption transactions use version 2 so CHECKSEQUENCEVERIFY is enforced
REDEEM_TX_VERSION = 2

SATS_PER_BTC = 100_000_000


# =============================================================================
# Script Constants
# =============================================================================

SECRET_HASH_SIZE = 32
PUBKEY_HASH_SIZE = 20
COMPRESSED_PUBKEY_SIZE = 33

# Branch selector pushed by a claim witness (truthy under MINIMALIF)
CLAIM_BRANCH_SELECTOR = b"\x01"

# Branch selector pushed by a refund witness (empty vector is false)
REFUND_BRANCH_SELECTOR = b""


# =============================================================================
# BIP68 Relative Locktime
# =============================================================================

# Bit 31: relative locktime disabled for this input
SEQUENCE_LOCKTIME_DISABLE_FLAG = 1 << 31

# Bit 22: value counts 512-second units instead of blocks
SEQUENCE_LOCKTIME_TYPE_FLAG = 1 << 22

# Low 16 bits carry the locktime value
SEQUENCE_LOCKTIME_MASK = 0x0000FFFF

MIN_LOCKTIME_BLOCKS = 1
MAX_LOCKTIME_BLOCKS = SEQUENCE_LOCKTIME_MASK

# Sequence used by ordinary (non-timelocked) inputs
SEQUENCE_FINAL = 0xFFFFFFFF


# =============================================================================
# Networks
# =============================================================================

# SDK network name -> embit NETWORKS key
EMBIT_NETWORKS = {
    "main": "main",
    "mainnet": "main",
    "test": "test",
    "testnet": "test",
    "signet": "signet",
    "regtest": "regtest",
}

MAINNET_API_URL = "https://blockstream.info/api"
TESTNET_API_URL = "https://blockstream.info/testnet/api"
SIGNET_API_URL = "https://mempool.space/signet/api"
REGTEST_API_URL = "http://localhost:3002"

DEFAULT_API_URLS = {
    "main": MAINNET_API_URL,
    "test": TESTNET_API_URL,
    "signet": SIGNET_API_URL,
    "regtest": REGTEST_API_URL,
}

DEFAULT_RPC_URL = "http://localhost:18443"
