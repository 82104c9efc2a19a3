"""
Protocol-wide immutable parameters for the private raffle.

These values are shared with the claim circuit and the off-chain proof
tooling. Changing any of them breaks every proof generated against the
old values.
"""

# BN254 scalar field modulus (every tree node, input and hash lives here)
FIELD_MODULUS = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)

# Tree depth bounds (the circuit pads paths to MAX_DEPTH)
MIN_DEPTH = 1
MAX_DEPTH = 32

# Number of recent roots the accumulator remembers
ROOT_HISTORY_SIZE = 30

# zero[0] = keccak256(ZERO_DOMAIN) mod FIELD_MODULUS
ZERO_DOMAIN = b"raffero"

# Randomness oracle request parameters
CALLBACK_SIGNATURE = "fulfillRandomWords(uint256,uint256[])"
NUM_WORDS = 1
REQUEST_CONFIRMATIONS = 3

# root, nullifierHash, recipientBinding, raffleId, winnerIndex, treeDepth
PUBLIC_INPUT_COUNT = 6

# Account that holds prize pools on the ledger
RAFFLE_ACCOUNT = "private-raffle"
