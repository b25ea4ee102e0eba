"""Oblivious tally accumulator.

Each vote touches the against, for and abstain counters in the same order
with the same operations. The encrypted choice only ever reaches the counters
through ``eq`` and ``select``; nothing here branches on it.
"""

from __future__ import annotations

from typing import Tuple

from .coprocessor import Ciphertext, Coprocessor, EUINT32
from .errors import DuplicateVote
from .models import ProposalVote, VoteType


def accumulate(
    coprocessor: Coprocessor,
    buckets: Tuple[Ciphertext, Ciphertext, Ciphertext],
    encrypted_choice: Ciphertext,
    encrypted_weight: Ciphertext,
) -> Tuple[Ciphertext, Ciphertext, Ciphertext]:
    """Return the three counters with the weight added to the chosen bucket

    Args
    - buckets: (against, for, abstain) accumulators
    - encrypted_choice: encryption of a VoteType value
    - encrypted_weight: encryption of the voter's weight
    """

    zero = coprocessor.trivial(0, EUINT32)
    updated = []
    for tag, bucket in zip(VoteType, buckets):
        hit = coprocessor.eq(encrypted_choice, int(tag))
        delta = coprocessor.select(hit, encrypted_weight, zero)
        updated.append(coprocessor.add(bucket, delta))
    return updated[0], updated[1], updated[2]


def count_vote(
    coprocessor: Coprocessor,
    proposal_vote: ProposalVote,
    voter: str,
    encrypted_choice: Ciphertext,
    encrypted_weight: Ciphertext,
) -> None:
    """Fold one voter's encrypted ballot into the proposal's counters

    Raises DuplicateVote if ``voter`` already voted; counters are left untouched.
    """

    if voter in proposal_vote.has_voted:
        raise DuplicateVote(f"{voter} already voted")

    against, for_, abstain = accumulate(
        coprocessor, proposal_vote.buckets(), encrypted_choice, encrypted_weight
    )

    proposal_vote.against_votes = against
    proposal_vote.for_votes = for_
    proposal_vote.abstain_votes = abstain
    proposal_vote.has_voted.add(voter)
