"""Reference runner that walks one proposal from encrypted voting to execution.

Run this script from the repository root to run a small simulated proposal.
"""

from fhe_governor import VoteType, build_governor, encrypt_for
from fhe_governor.config import Settings, configure_logging
from fhe_governor.coprocessor import EUINT8, EUINT32
from fhe_governor.errors import TallyNotDecrypted


def _print_heading(msg: str):
    print()
    print(msg)


def _print_kv(key: str, value):
    print(f"  {key}: {value}")


def main():
    settings = Settings.from_env()
    configure_logging("WARNING")

    _print_heading("[Setup] coprocessor key pair, gateway, lifecycle")
    setup = build_governor(settings)
    governor = setup["governor"]
    lifecycle = setup["lifecycle"]
    oracle = setup["oracle"]
    pub = setup["coprocessor"].public_key
    revealer = settings.revealers[0]
    _print_kv("oracle", oracle.address)
    _print_kv("revealer", revealer)
    _print_kv("counting mode", governor.COUNTING_MODE)

    proposal_id = 1
    lifecycle.propose(proposal_id, snapshot=0, deadline=10, quorum=10)
    lifecycle.advance()
    _print_kv(f"proposal {proposal_id}", governor.proposal_state(proposal_id).value)

    _print_heading("[Voting] encrypted choices and weights")
    ballots = [
        ("alice", VoteType.AGAINST, 5),
        ("bob", VoteType.FOR, 10),
        ("carol", VoteType.ABSTAIN, 2),
    ]
    for voter, choice, weight in ballots:
        governor.cast_vote(
            proposal_id,
            voter,
            encrypt_for(pub, int(choice), EUINT8),
            encrypt_for(pub, weight, EUINT32),
        )
        _print_kv("cast", voter)

    against, for_, abstain = governor.proposal_votes(proposal_id)
    _print_kv("for counter (ciphertext)", hex(for_.c2)[:18] + "..")

    _print_heading("[Close] voting window ends, base outcome recorded")
    lifecycle.set_block(11)
    lifecycle.record_outcome(proposal_id, succeeded=True)
    _print_kv("state", governor.proposal_state(proposal_id).value)
    try:
        governor.execute(proposal_id)
    except TallyNotDecrypted as e:
        _print_kv("execute", f"rejected ({e.code})")

    _print_heading("[Reveal] request tally decryption")
    request_id = governor.request_tally_decryption(proposal_id, revealer)
    _print_kv("request_id", request_id)
    _print_kv("state", governor.proposal_state(proposal_id).value)

    _print_heading("[Gateway] oracle decrypts and calls back")
    oracle.fulfill(request_id)
    tally = governor.get_decrypted_tally(proposal_id)
    _print_kv("against", tally.against)
    _print_kv("for", tally.for_)
    _print_kv("abstain", tally.abstain)
    _print_kv("quorum reached", governor.quorum_reached(proposal_id))
    _print_kv("vote succeeded", governor.vote_succeeded(proposal_id))
    _print_kv("state", governor.proposal_state(proposal_id).value)

    _print_heading("[Execute]")
    governor.execute(proposal_id)
    _print_kv("state", governor.proposal_state(proposal_id).value)

    print("\nEvents:")
    for event in governor.events:
        print(" ", event)


if __name__ == "__main__":
    main()
