from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import NamedTuple, Set

from .coprocessor import Ciphertext


class VoteType(IntEnum):
    AGAINST = 0
    FOR = 1
    ABSTAIN = 2


class ProposalState(Enum):
    PENDING = "Pending"
    ACTIVE = "Active"
    CANCELED = "Canceled"
    DEFEATED = "Defeated"
    SUCCEEDED = "Succeeded"
    QUEUED = "Queued"
    EXPIRED = "Expired"
    EXECUTED = "Executed"
    # derived by the overlay, never reported by the base lifecycle
    AWAITING_DECRYPTION = "AwaitingDecryption"
    DECRYPTION_IN_PROGRESS = "DecryptionInProgress"


TERMINAL_OUTCOMES = (ProposalState.SUCCEEDED, ProposalState.DEFEATED)


class DecryptionState(Enum):
    NOT_REQUESTED = "NotRequested"
    REQUESTED = "Requested"
    COMPLETED = "Completed"


@dataclass
class ProposalVote:
    """Encrypted counters for one proposal

    Attributes
    - against_votes, for_votes, abstain_votes: encrypted uint32 accumulators
    - has_voted: addresses that already voted (append only)
    """

    against_votes: Ciphertext
    for_votes: Ciphertext
    abstain_votes: Ciphertext
    has_voted: Set[str] = field(default_factory=set)

    def buckets(self):
        """Accumulators in VoteType order"""

        return self.against_votes, self.for_votes, self.abstain_votes


class DecryptedTally(NamedTuple):
    against: int
    for_: int
    abstain: int


@dataclass(frozen=True)
class Event:
    proposal_id: int


@dataclass(frozen=True)
class VoteCast(Event):
    voter: str


@dataclass(frozen=True)
class DecryptionRequested(Event):
    request_id: str


@dataclass(frozen=True)
class TallyDecrypted(Event):
    against: int
    for_: int
    abstain: int


@dataclass(frozen=True)
class ProposalExecuted(Event):
    pass
