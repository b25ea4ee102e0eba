"""Base proposal lifecycle as seen by the governor core.

``ProposalLifecycle`` is a small in-memory stand-in for the surrounding
governance module: block-number scheduling, cancel, and an outcome that is
resolved outside the core and recorded with ``record_outcome``.

The outcome is written once. If none has been recorded when the proposal is
first observed past its deadline, it resolves to Defeated and stays there, so
nothing seen by a reveal can be changed afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from .models import ProposalState

log = logging.getLogger(__name__)


class BaseLifecycle(Protocol):
    def base_state(self, proposal_id: int) -> ProposalState: ...

    def quorum_target(self, proposal_id: int) -> int: ...

    def execute(self, proposal_id: int) -> None: ...


@dataclass
class ProposalSchedule:
    snapshot: int
    deadline: int
    quorum: int = 0
    succeeded: Optional[bool] = None
    canceled: bool = False
    executed: bool = False


class ProposalLifecycle:
    def __init__(self, block: int = 0):
        self.block = block
        self._proposals: Dict[int, ProposalSchedule] = {}

    def propose(self, proposal_id: int, snapshot: int, deadline: int, quorum: int = 0) -> None:
        if proposal_id in self._proposals:
            raise ValueError(f"proposal {proposal_id} already exists")
        if deadline < snapshot:
            raise ValueError("deadline must not precede snapshot")
        self._proposals[proposal_id] = ProposalSchedule(snapshot=snapshot, deadline=deadline, quorum=quorum)
        log.info("proposal %s created (snapshot=%d deadline=%d)", proposal_id, snapshot, deadline)

    def _get(self, proposal_id: int) -> ProposalSchedule:
        try:
            return self._proposals[proposal_id]
        except KeyError:
            raise LookupError(f"unknown proposal {proposal_id}") from None

    def set_block(self, block: int) -> None:
        if block < self.block:
            raise ValueError("block number cannot go backwards")
        self.block = block

    def advance(self, blocks: int = 1) -> int:
        self.set_block(self.block + blocks)
        return self.block

    def cancel(self, proposal_id: int) -> None:
        sched = self._get(proposal_id)
        if sched.executed:
            raise ValueError("executed proposals cannot be canceled")
        sched.canceled = True

    def record_outcome(self, proposal_id: int, succeeded: bool) -> None:
        sched = self._get(proposal_id)
        if self.block <= sched.deadline:
            raise ValueError("voting has not closed yet")
        if sched.succeeded is not None:
            raise ValueError(f"outcome of proposal {proposal_id} is already resolved")
        sched.succeeded = bool(succeeded)
        log.info("proposal %s outcome recorded (succeeded=%s)", proposal_id, sched.succeeded)

    def base_state(self, proposal_id: int) -> ProposalState:
        sched = self._get(proposal_id)
        if sched.canceled:
            return ProposalState.CANCELED
        if sched.executed:
            return ProposalState.EXECUTED
        if self.block <= sched.snapshot:
            return ProposalState.PENDING
        if self.block <= sched.deadline:
            return ProposalState.ACTIVE
        if sched.succeeded is None:
            sched.succeeded = False
            log.info("proposal %s closed without an outcome; defeated", proposal_id)
        return ProposalState.SUCCEEDED if sched.succeeded else ProposalState.DEFEATED

    def quorum_target(self, proposal_id: int) -> int:
        return self._get(proposal_id).quorum

    def execute(self, proposal_id: int) -> None:
        if self.base_state(proposal_id) is not ProposalState.SUCCEEDED:
            raise ValueError(f"proposal {proposal_id} is not executable")
        self._get(proposal_id).executed = True
