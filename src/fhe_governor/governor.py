"""Confidential vote counting and tally revelation.

Votes are folded into encrypted counters while voting is open. Once the base
lifecycle settles on Succeeded or Defeated, an authorized revealer asks the
decryption oracle for the three counters; the oracle answers later through
``on_decryption_result``. Execution stays blocked until that answer has been
stored.

Request and response are two independent entry points correlated only by the
stored request id:

    NotRequested --request_tally_decryption--> Requested --on_decryption_result--> Completed
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from . import accumulator
from .access import REVEALER_ROLE, AccessGuard, InMemoryRoleRegistry
from .config import Settings
from .coprocessor import Ciphertext, Coprocessor, EUINT32
from .errors import (
    InvalidRequestId,
    InvalidStateForDecryption,
    MalformedDecryptionResult,
    NotSuccessful,
    TallyNotAvailable,
    TallyNotDecrypted,
    VotingClosed,
)
from .lifecycle import BaseLifecycle, ProposalLifecycle
from .models import (
    TERMINAL_OUTCOMES,
    DecryptedTally,
    DecryptionRequested,
    DecryptionState,
    Event,
    ProposalExecuted,
    ProposalState,
    TallyDecrypted,
    VoteCast,
)
from .oracle import DecryptionOracle, LocalDecryptionOracle
from .store import GovernorStore

log = logging.getLogger(__name__)

UINT32_MASK = 0xFFFFFFFF


class Governor:
    """Governance core with encrypted tallying

    Args
    - coprocessor: evaluator for encrypted integer operations
    - lifecycle: base proposal lifecycle (scheduling, outcome, execution)
    - oracle: decryption oracle / gateway
    - guard: access control for reveal requests and oracle callbacks
    """

    COUNTING_MODE = "support=bravo&quorum=for,abstain"

    def __init__(
        self,
        coprocessor: Coprocessor,
        lifecycle: BaseLifecycle,
        oracle: DecryptionOracle,
        guard: AccessGuard,
    ):
        self.coprocessor = coprocessor
        self.lifecycle = lifecycle
        self.oracle = oracle
        self.guard = guard
        self.store = GovernorStore(zero=lambda: coprocessor.trivial(0, EUINT32))
        self.events: List[Event] = []
        self._subscribers: List[Callable[[Event], None]] = []

    ## --- events ---------------------------------------------------------

    def subscribe(self, fn: Callable[[Event], None]) -> None:
        self._subscribers.append(fn)

    def _emit(self, event: Event) -> None:
        self.events.append(event)
        for fn in self._subscribers:
            fn(event)

    ## --- voting -----------------------------------------------------------

    def cast_vote(
        self,
        proposal_id: int,
        voter: str,
        encrypted_choice: Ciphertext,
        encrypted_weight: Ciphertext,
    ) -> None:
        state = self.lifecycle.base_state(proposal_id)
        if state is not ProposalState.ACTIVE:
            raise VotingClosed(f"proposal {proposal_id} is {state.value}")

        accumulator.count_vote(
            self.coprocessor,
            self.store.proposal_vote(proposal_id),
            voter,
            encrypted_choice,
            encrypted_weight,
        )
        log.info("vote counted on proposal %s from %s", proposal_id, voter)
        self._emit(VoteCast(proposal_id=proposal_id, voter=voter))

    def proposal_votes(self, proposal_id: int):
        """Encrypted (against, for, abstain) accumulators"""

        return self.store.proposal_vote(proposal_id).buckets()

    def has_voted(self, proposal_id: int, voter: str) -> bool:
        return voter in self.store.proposal_vote(proposal_id).has_voted

    ## --- state overlay ----------------------------------------------------

    def decryption_state(self, proposal_id: int) -> DecryptionState:
        return self.store.decryption_state(proposal_id)

    def proposal_state(self, proposal_id: int) -> ProposalState:
        base = self.lifecycle.base_state(proposal_id)
        if base not in TERMINAL_OUTCOMES:
            return base

        dstate = self.store.decryption_state(proposal_id)
        if dstate is DecryptionState.NOT_REQUESTED:
            return ProposalState.AWAITING_DECRYPTION
        if dstate is DecryptionState.REQUESTED:
            return ProposalState.DECRYPTION_IN_PROGRESS
        return base

    def execute(self, proposal_id: int) -> None:
        if self.lifecycle.base_state(proposal_id) is not ProposalState.SUCCEEDED:
            raise NotSuccessful(f"proposal {proposal_id} has not succeeded")
        if self.store.decryption_state(proposal_id) is not DecryptionState.COMPLETED:
            raise TallyNotDecrypted(f"tally of proposal {proposal_id} is not revealed")

        self.lifecycle.execute(proposal_id)
        log.info("proposal %s executed", proposal_id)
        self._emit(ProposalExecuted(proposal_id=proposal_id))

    ## --- decryption protocol ----------------------------------------------

    def request_tally_decryption(self, proposal_id: int, caller: str) -> str:
        self.guard.require_revealer(caller)

        state = self.proposal_state(proposal_id)
        if state is not ProposalState.AWAITING_DECRYPTION:
            raise InvalidStateForDecryption(f"proposal {proposal_id} is {state.value}")

        request_id = self.oracle.request_decryption(
            list(self.proposal_votes(proposal_id)),
            context=proposal_id,
            callback=self.on_decryption_result,
        )
        self.store.open_request(proposal_id, request_id)
        log.info("tally decryption requested for proposal %s (request %s)", proposal_id, request_id)
        self._emit(DecryptionRequested(proposal_id=proposal_id, request_id=request_id))
        return request_id

    def on_decryption_result(self, request_id: str, plaintext_values: Sequence[int], caller: str) -> None:
        self.guard.require_oracle(caller)

        proposal_id = self.oracle.request_context(request_id)
        if proposal_id is None or self.store.request_id(proposal_id) != request_id:
            log.warning("decryption result for stale or unknown request %s", request_id)
            raise InvalidRequestId(f"request {request_id} is not outstanding")

        values = list(plaintext_values)
        if len(values) != 3:
            raise MalformedDecryptionResult(f"expected 3 values, got {len(values)}")
        try:
            tally = DecryptedTally(*(int(v) & UINT32_MASK for v in values))
        except (TypeError, ValueError):
            raise MalformedDecryptionResult("decrypted values must be integers") from None

        self.store.complete_request(proposal_id, tally)
        log.info("tally stored for proposal %s", proposal_id)
        self._emit(
            TallyDecrypted(
                proposal_id=proposal_id,
                against=tally.against,
                for_=tally.for_,
                abstain=tally.abstain,
            )
        )

    def get_decrypted_tally(self, proposal_id: int) -> DecryptedTally:
        tally = self.store.tally(proposal_id)
        if self.store.decryption_state(proposal_id) is not DecryptionState.COMPLETED or tally is None:
            raise TallyNotAvailable(f"tally of proposal {proposal_id} is not available")
        return tally

    def outstanding_request(self, proposal_id: int) -> Optional[str]:
        """Live request id, if a reveal is in flight (lets operators spot a stuck reveal)"""

        return self.store.request_id(proposal_id)

    ## --- counting predicates on the revealed tally ------------------------

    def quorum_reached(self, proposal_id: int) -> bool:
        tally = self.get_decrypted_tally(proposal_id)
        return tally.for_ + tally.abstain >= self.lifecycle.quorum_target(proposal_id)

    def vote_succeeded(self, proposal_id: int) -> bool:
        tally = self.get_decrypted_tally(proposal_id)
        return tally.for_ > tally.against


def build_governor(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Wire a governor with the in-process coprocessor, gateway and lifecycle

    Returns a dict containing:
    - governor, coprocessor, oracle, roles, lifecycle
    - settings used for the wiring
    """

    if settings is None:
        settings = Settings.from_env()
    coprocessor = Coprocessor(max_plaintext=settings.max_plaintext)
    oracle = LocalDecryptionOracle(coprocessor, address=settings.oracle_address)
    roles = InMemoryRoleRegistry({REVEALER_ROLE: settings.revealers})
    lifecycle = ProposalLifecycle()
    governor = Governor(
        coprocessor=coprocessor,
        lifecycle=lifecycle,
        oracle=oracle,
        guard=AccessGuard(roles, settings.oracle_address),
    )
    return {
        "governor": governor,
        "coprocessor": coprocessor,
        "oracle": oracle,
        "roles": roles,
        "lifecycle": lifecycle,
        "settings": settings,
    }
