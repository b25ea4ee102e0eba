"""fhe_governor package - confidential vote tallying for on-chain governance

Votes are counted on encrypted integers and only revealed through an
authorized, asynchronous decrypt-by-oracle step that gates execution.
"""

from .access import REVEALER_ROLE, AccessGuard, InMemoryRoleRegistry
from .coprocessor import Ciphertext, Coprocessor, encrypt_for
from .governor import Governor, build_governor
from .lifecycle import ProposalLifecycle
from .models import DecryptedTally, DecryptionState, ProposalState, VoteType
from .oracle import LocalDecryptionOracle

__all__ = [
    "AccessGuard",
    "Ciphertext",
    "Coprocessor",
    "DecryptedTally",
    "DecryptionState",
    "Governor",
    "InMemoryRoleRegistry",
    "LocalDecryptionOracle",
    "ProposalLifecycle",
    "ProposalState",
    "REVEALER_ROLE",
    "VoteType",
    "build_governor",
    "encrypt_for",
]
