"""
Public rules of the holder lottery.

These values define who can win and how much weight each wallet carries.
Changing them changes the outcome of a draw and MUST be publicly announced.
"""

# One ticket per 10,000 tokens held (UI units)
TOKENS_PER_TICKET = 10_000

# Balances above 20M tokens earn nothing extra
MAX_TOKENS = 20_000_000

# Hard cap per wallet (same as MAX_TOKENS / TOKENS_PER_TICKET, kept explicit)
MAX_TICKETS = 2_000

# Upper bound of holders pulled from any provider
MAX_HOLDERS = 10_000

# Birdeye: offset pagination
BIRDEYE_BASE = "https://public-api.birdeye.so"
BIRDEYE_PAGE_SIZE = 100
BIRDEYE_MIN_INTERVAL_S = 0.05

# Helius: cursor pagination (DAS getTokenAccounts)
HELIUS_API_BASE = "https://api.helius.xyz"
HELIUS_RPC_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={api_key}"
HELIUS_PAGE_SIZE = 1_000
HELIUS_MIN_INTERVAL_S = 0.1

# Used when a token's decimals cannot be resolved
DEFAULT_DECIMALS = 9

# Eligibility batch checking: 10 wallets at a time, ~10 requests per second
ELIGIBILITY_GROUP_SIZE = 10
ELIGIBILITY_GROUP_DELAY_S = 1.0
ELIGIBILITY_CACHE_TTL_S = 300.0

# Known AMM pools, LP programs and token programs. Never entrants.
EXCLUDED_ADDRESSES = frozenset(
    {
        # Raydium AMM
        "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",
        # Raydium CLMM
        "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK",
        # Orca Whirlpool
        "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",
        # Pump.fun
        "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P",
        # Pump.fun fee
        "CebN5WGQ4jvEPvsVU4EoHEpgzq1VV7AbicfhtW4xC9iM",
        # Jupiter Aggregator
        "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",
        # Token Program
        "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
        # Associated Token Program
        "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL",
    }
)
