"""Minimal Flask API around the confidential governor.

Endpoints:
- POST /init -> build coprocessor, gateway, lifecycle and governor
- GET /public-key -> parameters voters encrypt against
- POST /auth/challenge, POST /auth -> caller MAC after a challenge/response
  over the caller secret (derive_caller_secret, handed out by operators)
- POST /proposals, POST /clock, POST /proposals/<id>/outcome -> drive the base lifecycle
- POST /proposals/<id>/votes -> cast an encrypted vote
- GET /proposals/<id>/state, /tally, /encrypted-votes, /votes/<voter>
- POST /proposals/<id>/reveal -> request tally decryption (revealer only)
- POST /oracle/fulfill -> relay queued requests through the local gateway
- POST /oracle/callback -> decryption result from an external oracle
- POST /proposals/<id>/execute
"""

import logging
import threading
from typing import Any, Dict

from flask import Flask, jsonify, request

from .access import build_auth_challenge, issue_caller_token, verify_auth_proof, verify_caller_token
from .config import Settings, configure_logging
from .coprocessor import Ciphertext
from .errors import (
    AuthorizationError,
    DuplicateVote,
    GovernorError,
    InvalidStateForDecryption,
    NotAuthenticated,
    ProtocolIntegrityError,
)
from .governor import build_governor

log = logging.getLogger(__name__)

app = Flask(__name__)

# In-memory governance state; every governor call runs under _LOCK
_STATE: Dict[str, Any] = {
    "initialized": False,
    "governor": None,
    "oracle": None,
    "lifecycle": None,
    "coprocessor": None,
    "settings": None,
    "challenges": {},
}
_LOCK = threading.Lock()


def _status_for(e: GovernorError) -> int:
    if isinstance(e, AuthorizationError):
        return 403
    if isinstance(e, (ProtocolIntegrityError, DuplicateVote, InvalidStateForDecryption)):
        return 409
    return 400


@app.errorhandler(GovernorError)
def handle_governor_error(e: GovernorError):
    return jsonify({"error": e.code, "detail": str(e)}), _status_for(e)


@app.errorhandler(LookupError)
def handle_unknown(e: LookupError):
    return jsonify({"error": "not_found", "detail": str(e)}), 404


def _require_init():
    if not _STATE["initialized"]:
        return jsonify({"error": "not initialized"}), 400
    return None


def _caller() -> str:
    """Identity from X-Caller, trusted only with a valid X-Caller-Mac"""

    address = request.headers.get("X-Caller", "")
    mac = request.headers.get("X-Caller-Mac", "")
    if not address or not verify_caller_token(_STATE["settings"].token_key, address, mac):
        return ""
    return address


def _authenticated_caller() -> str:
    address = _caller()
    if not address:
        raise NotAuthenticated("missing or invalid caller MAC")
    return address


def _tally_body(tally) -> Dict[str, int]:
    return {"against": tally.against, "for": tally.for_, "abstain": tally.abstain}


@app.route("/init", methods=["POST"])
def init_governor():
    """Initialize the governor and its collaborators."""
    st = _STATE
    if st["initialized"]:
        return jsonify({"error": "already initialized"}), 400
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    st.update(build_governor(settings))
    st["challenges"] = {}
    st["initialized"] = True
    return jsonify(
        {
            "status": "initialized",
            "oracle": settings.oracle_address,
            "counting_mode": st["governor"].COUNTING_MODE,
        }
    )


@app.route("/public-key", methods=["GET"])
def public_key():
    err = _require_init()
    if err:
        return err
    pub = _STATE["coprocessor"].public_key
    return jsonify(
        {"p": hex(pub.params.p), "q": hex(pub.params.q), "g": hex(pub.params.g), "y": hex(pub.y)}
    )


@app.route("/auth/challenge", methods=["POST"])
def auth_challenge():
    """Fresh challenge for {"address": "..."}; answered at /auth."""
    err = _require_init()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    address = data.get("address")
    if not isinstance(address, str) or not address:
        return jsonify({"error": "missing address"}), 400
    challenge = build_auth_challenge()
    with _LOCK:
        _STATE["challenges"][address] = challenge
    return jsonify({"address": address, "challenge": challenge.hex()})


@app.route("/auth", methods=["POST"])
def authenticate_caller():
    """Issue a caller MAC.

    Expects {"address": "...", "proof": hex} where proof is the HMAC of the
    outstanding challenge under the caller secret issued out of band.
    """
    err = _require_init()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    address = data.get("address")
    proof_hex = data.get("proof")
    if not isinstance(address, str) or not address or not isinstance(proof_hex, str):
        return jsonify({"error": "missing address or proof"}), 400
    try:
        proof = bytes.fromhex(proof_hex)
    except ValueError:
        return jsonify({"error": "proof must be hex"}), 400

    key = _STATE["settings"].token_key
    with _LOCK:
        challenge = _STATE["challenges"].pop(address, None)
    if challenge is None or not verify_auth_proof(key, address, challenge, proof):
        log.warning("caller authentication failed for %s", address)
        return jsonify({"error": "authentication failed"}), 403
    return jsonify({"address": address, "mac": issue_caller_token(key, address)})


@app.route("/proposals", methods=["POST"])
def create_proposal():
    err = _require_init()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    try:
        proposal_id = int(data["proposal_id"])
        snapshot = int(data["snapshot"])
        deadline = int(data["deadline"])
        quorum = int(data.get("quorum", 0))
    except (KeyError, TypeError, ValueError):
        return jsonify({"error": "missing or invalid fields"}), 400
    with _LOCK:
        try:
            _STATE["lifecycle"].propose(proposal_id, snapshot, deadline, quorum)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
    return jsonify({"status": "created", "proposal_id": proposal_id}), 201


@app.route("/clock", methods=["POST"])
def set_clock():
    err = _require_init()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    block = data.get("block")
    if not isinstance(block, int):
        return jsonify({"error": "missing or invalid 'block'"}), 400
    with _LOCK:
        try:
            _STATE["lifecycle"].set_block(block)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
    return jsonify({"block": block})


@app.route("/proposals/<int:proposal_id>/outcome", methods=["POST"])
def record_outcome(proposal_id: int):
    err = _require_init()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    succeeded = data.get("succeeded")
    if not isinstance(succeeded, bool):
        return jsonify({"error": "missing or invalid 'succeeded'"}), 400
    with _LOCK:
        try:
            _STATE["lifecycle"].record_outcome(proposal_id, succeeded)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
    return jsonify({"status": "recorded"})


@app.route("/proposals/<int:proposal_id>/votes", methods=["POST"])
def cast_vote(proposal_id: int):
    """Cast an encrypted vote.

    Expects JSON with: {"choice": {c1, c2, bits}, "weight": {c1, c2, bits}}
    and caller headers; the voter is the authenticated caller. An optional
    "voter" field must name that same caller.
    """
    err = _require_init()
    if err:
        return err
    voter = _authenticated_caller()
    data = request.get_json(silent=True) or {}
    if data.get("voter", voter) != voter:
        log.warning("vote for %s rejected from caller %s", data.get("voter"), voter)
        raise NotAuthenticated("voter does not match the authenticated caller")
    choice = data.get("choice")
    weight = data.get("weight")
    if not isinstance(choice, dict) or not isinstance(weight, dict):
        return jsonify({"error": "missing or invalid fields"}), 400
    try:
        enc_choice = Ciphertext.from_dict(choice)
        enc_weight = Ciphertext.from_dict(weight)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    with _LOCK:
        _STATE["governor"].cast_vote(proposal_id, voter, enc_choice, enc_weight)
    return jsonify({"status": "cast"}), 201


@app.route("/proposals/<int:proposal_id>/votes/<voter>", methods=["GET"])
def has_voted(proposal_id: int, voter: str):
    err = _require_init()
    if err:
        return err
    with _LOCK:
        voted = _STATE["governor"].has_voted(proposal_id, voter)
    return jsonify({"has_voted": voted})


@app.route("/proposals/<int:proposal_id>/encrypted-votes", methods=["GET"])
def encrypted_votes(proposal_id: int):
    err = _require_init()
    if err:
        return err
    with _LOCK:
        against, for_, abstain = _STATE["governor"].proposal_votes(proposal_id)
    return jsonify({"against": against.to_dict(), "for": for_.to_dict(), "abstain": abstain.to_dict()})


@app.route("/proposals/<int:proposal_id>/state", methods=["GET"])
def proposal_state(proposal_id: int):
    err = _require_init()
    if err:
        return err
    gov = _STATE["governor"]
    with _LOCK:
        state = gov.proposal_state(proposal_id)
        dstate = gov.decryption_state(proposal_id)
    return jsonify({"state": state.value, "decryption_state": dstate.value})


@app.route("/proposals/<int:proposal_id>/reveal", methods=["POST"])
def request_reveal(proposal_id: int):
    err = _require_init()
    if err:
        return err
    with _LOCK:
        request_id = _STATE["governor"].request_tally_decryption(proposal_id, _caller())
    return jsonify({"request_id": request_id}), 202


@app.route("/oracle/fulfill", methods=["POST"])
def fulfill_requests():
    """Relay every queued decryption request through the local gateway.

    Requests the gateway cannot decrypt are reported under "failed" and stay
    queued; they do not hold back the others.
    """
    err = _require_init()
    if err:
        return err
    with _LOCK:
        done, failed = _STATE["oracle"].fulfill_pending()
    return jsonify({"fulfilled": done, "failed": failed})


@app.route("/oracle/callback", methods=["POST"])
def oracle_callback():
    """Decryption result from an oracle: {"request_id": "...", "values": [a, f, ab]}"""
    err = _require_init()
    if err:
        return err
    data = request.get_json(silent=True) or {}
    request_id = data.get("request_id")
    values = data.get("values")
    if not isinstance(request_id, str) or not isinstance(values, list):
        return jsonify({"error": "missing or invalid fields"}), 400
    with _LOCK:
        _STATE["governor"].on_decryption_result(request_id, values, _caller())
    return jsonify({"status": "accepted"})


@app.route("/proposals/<int:proposal_id>/tally", methods=["GET"])
def decrypted_tally(proposal_id: int):
    err = _require_init()
    if err:
        return err
    with _LOCK:
        tally = _STATE["governor"].get_decrypted_tally(proposal_id)
    return jsonify(_tally_body(tally))


@app.route("/proposals/<int:proposal_id>/execute", methods=["POST"])
def execute_proposal(proposal_id: int):
    err = _require_init()
    if err:
        return err
    with _LOCK:
        _STATE["governor"].execute(proposal_id)
    return jsonify({"status": "executed"})


if __name__ == "__main__":
    app.run(debug=Settings.from_env().debug)
