import os
import sys

import pytest


# Ensure repository src directory is on sys.path for tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from fhe_governor import build_governor  # noqa: E402
from fhe_governor.config import Settings  # noqa: E402
from fhe_governor.coprocessor import EUINT8, EUINT32, encrypt_for  # noqa: E402


ORACLE = "gateway"
REVEALER = "admin"


@pytest.fixture
def settings():
    return Settings(oracle_address=ORACLE, revealers=(REVEALER,), max_plaintext=2**16)


@pytest.fixture
def setup(settings):
    return build_governor(settings)


@pytest.fixture
def governor(setup):
    return setup["governor"]


@pytest.fixture
def ballot(setup):
    """Encrypt (choice, weight) the way a voter's client would"""
    pub = setup["coprocessor"].public_key

    def _ballot(choice, weight):
        return encrypt_for(pub, int(choice), EUINT8), encrypt_for(pub, weight, EUINT32)

    return _ballot


@pytest.fixture
def active_proposal(setup):
    """Proposal 1, open for voting (snapshot 0, deadline 10, quorum 10)"""
    lifecycle = setup["lifecycle"]
    lifecycle.propose(1, snapshot=0, deadline=10, quorum=10)
    lifecycle.set_block(1)
    return 1


@pytest.fixture
def close_voting(setup):
    def _close(proposal_id, succeeded=True):
        lifecycle = setup["lifecycle"]
        lifecycle.set_block(11)
        lifecycle.record_outcome(proposal_id, succeeded)

    return _close
