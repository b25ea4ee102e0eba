"""Small CLI for interacting with the governor Flask server.

Usage examples:
    python cli.py init
    python cli.py propose --id 1 --snapshot 0 --deadline 10 --quorum 5
    python cli.py caller-secret --address alice   # operator, needs FHE_GOVERNOR_TOKEN_KEY
    python cli.py vote --id 1 --voter alice --secret <hex> --choice for --weight 10
    python cli.py reveal --id 1 --caller admin --secret <hex>
    python cli.py fulfill
    python cli.py tally --id 1
"""

import argparse
import os
import sys

import requests

from fhe_governor.access import derive_caller_secret, prove_auth
from fhe_governor.config import Settings
from fhe_governor.coprocessor import EUINT8, EUINT32, encrypt_for
from fhe_governor.models import VoteType
from fhe_governor.secrecy import ElGamalParams, ElGamalPublicKey

BASE = Settings.from_env().base_url


def _show(r):
    print(r.status_code, r.json())


def _auth_headers(address: str, secret_hex: str):
    r = requests.post(f"{BASE}/auth/challenge", json={"address": address}, timeout=2)
    r.raise_for_status()
    challenge = bytes.fromhex(r.json()["challenge"])
    proof = prove_auth(bytes.fromhex(secret_hex), challenge)
    r = requests.post(f"{BASE}/auth", json={"address": address, "proof": proof.hex()}, timeout=2)
    r.raise_for_status()
    return {"X-Caller": address, "X-Caller-Mac": r.json()["mac"]}


def _public_key() -> ElGamalPublicKey:
    r = requests.get(f"{BASE}/public-key", timeout=2)
    r.raise_for_status()
    data = r.json()
    params = ElGamalParams(p=int(data["p"], 16), q=int(data["q"], 16), g=int(data["g"], 16))
    return ElGamalPublicKey(params=params, y=int(data["y"], 16))


def init():
    _show(requests.post(f"{BASE}/init", timeout=10))


def propose(proposal_id: int, snapshot: int, deadline: int, quorum: int):
    body = {"proposal_id": proposal_id, "snapshot": snapshot, "deadline": deadline, "quorum": quorum}
    _show(requests.post(f"{BASE}/proposals", json=body, timeout=2))


def clock(block: int):
    _show(requests.post(f"{BASE}/clock", json={"block": block}, timeout=2))


def outcome(proposal_id: int, succeeded: bool):
    _show(requests.post(f"{BASE}/proposals/{proposal_id}/outcome", json={"succeeded": succeeded}, timeout=2))


def caller_secret(address: str):
    key = os.environ.get("FHE_GOVERNOR_TOKEN_KEY")
    if not key:
        sys.exit("FHE_GOVERNOR_TOKEN_KEY must be set to the server's token key")
    print(derive_caller_secret(key.encode("utf-8"), address).hex())


def vote(proposal_id: int, voter: str, secret_hex: str, choice: str, weight: int):
    pub = _public_key()
    headers = _auth_headers(voter, secret_hex)
    body = {
        "choice": encrypt_for(pub, int(VoteType[choice.upper()]), EUINT8).to_dict(),
        "weight": encrypt_for(pub, weight, EUINT32).to_dict(),
    }
    _show(requests.post(f"{BASE}/proposals/{proposal_id}/votes", json=body, headers=headers, timeout=10))


def state(proposal_id: int):
    _show(requests.get(f"{BASE}/proposals/{proposal_id}/state", timeout=2))


def reveal(proposal_id: int, caller: str, secret_hex: str):
    headers = _auth_headers(caller, secret_hex)
    _show(requests.post(f"{BASE}/proposals/{proposal_id}/reveal", headers=headers, timeout=2))


def fulfill():
    _show(requests.post(f"{BASE}/oracle/fulfill", timeout=60))


def tally(proposal_id: int):
    _show(requests.get(f"{BASE}/proposals/{proposal_id}/tally", timeout=2))


def execute(proposal_id: int):
    _show(requests.post(f"{BASE}/proposals/{proposal_id}/execute", timeout=2))


def main():
    p = argparse.ArgumentParser()
    sub = p.add_subparsers(dest="cmd")
    sub.add_parser("init")
    s = sub.add_parser("propose")
    s.add_argument("--id", type=int, required=True)
    s.add_argument("--snapshot", type=int, required=True)
    s.add_argument("--deadline", type=int, required=True)
    s.add_argument("--quorum", type=int, default=0)
    c = sub.add_parser("clock")
    c.add_argument("--block", type=int, required=True)
    o = sub.add_parser("outcome")
    o.add_argument("--id", type=int, required=True)
    o.add_argument("--defeated", action="store_true")
    v = sub.add_parser("vote")
    v.add_argument("--id", type=int, required=True)
    v.add_argument("--voter", required=True)
    v.add_argument("--secret", required=True, help="caller secret (hex)")
    v.add_argument("--choice", required=True, choices=["against", "for", "abstain"])
    v.add_argument("--weight", type=int, required=True)
    for name in ("state", "tally", "execute"):
        sp = sub.add_parser(name)
        sp.add_argument("--id", type=int, required=True)
    r = sub.add_parser("reveal")
    r.add_argument("--id", type=int, required=True)
    r.add_argument("--caller", required=True)
    r.add_argument("--secret", required=True, help="caller secret (hex)")
    cs = sub.add_parser("caller-secret")
    cs.add_argument("--address", required=True)
    sub.add_parser("fulfill")
    args = p.parse_args()
    if args.cmd == "init":
        init()
    elif args.cmd == "propose":
        propose(args.id, args.snapshot, args.deadline, args.quorum)
    elif args.cmd == "clock":
        clock(args.block)
    elif args.cmd == "outcome":
        outcome(args.id, not args.defeated)
    elif args.cmd == "vote":
        vote(args.id, args.voter, args.secret, args.choice, args.weight)
    elif args.cmd == "state":
        state(args.id)
    elif args.cmd == "reveal":
        reveal(args.id, args.caller, args.secret)
    elif args.cmd == "caller-secret":
        caller_secret(args.address)
    elif args.cmd == "fulfill":
        fulfill()
    elif args.cmd == "tally":
        tally(args.id)
    elif args.cmd == "execute":
        execute(args.id)
    else:
        p.print_help()


if __name__ == "__main__":
    main()
