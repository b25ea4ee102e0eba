"""Per-proposal state, keyed by proposal id with a defined default for absent keys.

Entries are created on first use and never removed. Writes only happen through
the governor after every precondition of the calling operation has passed.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

from .coprocessor import Ciphertext
from .models import DecryptedTally, DecryptionState, ProposalVote


class GovernorStore:
    def __init__(self, zero: Callable[[], Ciphertext]):
        self._zero = zero
        self._votes: Dict[int, ProposalVote] = {}
        self._decryption_states: Dict[int, DecryptionState] = {}
        self._request_ids: Dict[int, str] = {}
        self._tallies: Dict[int, DecryptedTally] = {}

    def proposal_vote(self, proposal_id: int) -> ProposalVote:
        pv = self._votes.get(proposal_id)
        if pv is None:
            pv = ProposalVote(self._zero(), self._zero(), self._zero())
            self._votes[proposal_id] = pv
        return pv

    def decryption_state(self, proposal_id: int) -> DecryptionState:
        return self._decryption_states.setdefault(proposal_id, DecryptionState.NOT_REQUESTED)

    def request_id(self, proposal_id: int) -> Optional[str]:
        return self._request_ids.get(proposal_id)

    def tally(self, proposal_id: int) -> Optional[DecryptedTally]:
        return self._tallies.get(proposal_id)

    def open_request(self, proposal_id: int, request_id: str) -> None:
        if self.decryption_state(proposal_id) is not DecryptionState.NOT_REQUESTED:
            raise RuntimeError("decryption state only moves forward")
        self._request_ids[proposal_id] = request_id
        self._decryption_states[proposal_id] = DecryptionState.REQUESTED

    def complete_request(self, proposal_id: int, tally: DecryptedTally) -> None:
        if proposal_id in self._tallies:
            raise RuntimeError("decrypted tally is immutable")
        self._tallies[proposal_id] = tally
        del self._request_ids[proposal_id]
        self._decryption_states[proposal_id] = DecryptionState.COMPLETED
