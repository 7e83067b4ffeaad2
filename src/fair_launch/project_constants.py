"""
Program-wide parameters for the fair launch client.

Program ids and seeds must match the deployed programs; changing them
points the client at a different raffle.
"""

FAIR_LAUNCH_PROGRAM_ID = "faircnAB9k59Y4TXmLabBULeuTLgV7TkGMGNkjnA15j"
CANDY_MACHINE_PROGRAM_ID = "cndyAnrLdpjq1Ssp1z8xxDsB8dxe7u4HL5Nxi2K5WXZ"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
SYSVAR_RENT_ID = "SysvarRent111111111111111111111111111111111"
SYSVAR_CLOCK_ID = "SysvarC1ock11111111111111111111111111111111"

# PDA seeds
FAIR_LAUNCH_PREFIX = b"fair_launch"
LOTTERY_SEED = b"lottery"

LAMPORTS_PER_SOL = 1_000_000_000

# Lottery account: discriminator(8) | fair launch(32) | bump(1) | flag bytes
LOTTERY_HEADER_SIZE = 8 + 32 + 1

# Kept free on top of bid + fee so the wallet can still pay for the transaction.
DEFAULT_SAFETY_MARGIN_LAMPORTS = LAMPORTS_PER_SOL // 100

DEFAULT_TX_TIMEOUT_MS = 30_000
DEFAULT_COMMITMENT = "confirmed"
DEFAULT_POLL_INTERVAL_S = 1.0
