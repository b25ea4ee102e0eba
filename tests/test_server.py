import pytest

# If Flask isn't installed in the environment, skip these integration tests.
pytest.importorskip("flask")

from fhe_governor import server
from fhe_governor.access import derive_caller_secret, prove_auth
from fhe_governor.coprocessor import EUINT8, EUINT32, encrypt_for
from fhe_governor.models import VoteType
from fhe_governor.secrecy import ElGamalParams, ElGamalPublicKey

TOKEN_KEY = "server-token-key"


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("FHE_GOVERNOR_MAX_PLAINTEXT", "65535")
    monkeypatch.setenv("FHE_GOVERNOR_ORACLE_ADDRESS", "gateway")
    monkeypatch.setenv("FHE_GOVERNOR_REVEALERS", "admin")
    monkeypatch.setenv("FHE_GOVERNOR_TOKEN_KEY", TOKEN_KEY)
    monkeypatch.setattr(server, "_STATE", {"initialized": False})
    client = server.app.test_client()
    rv = client.post("/init", json={})
    assert rv.status_code == 200
    assert rv.get_json()["counting_mode"] == "support=bravo&quorum=for,abstain"
    return client


def _pub(client):
    data = client.get("/public-key").get_json()
    params = ElGamalParams(p=int(data["p"], 16), q=int(data["q"], 16), g=int(data["g"], 16))
    return ElGamalPublicKey(params=params, y=int(data["y"], 16))


def _login(client, address, secret=None):
    """Challenge/response at /auth; the secret defaults to the one operators hand out"""
    if secret is None:
        secret = derive_caller_secret(TOKEN_KEY.encode("utf-8"), address)
    challenge = client.post("/auth/challenge", json={"address": address}).get_json()["challenge"]
    proof = prove_auth(secret, bytes.fromhex(challenge))
    return client.post("/auth", json={"address": address, "proof": proof.hex()})


def _headers(client, address):
    rv = _login(client, address)
    assert rv.status_code == 200
    return {"X-Caller": address, "X-Caller-Mac": rv.get_json()["mac"]}


def _vote(client, pub, voter, choice, weight, proposal_id=1):
    return client.post(
        f"/proposals/{proposal_id}/votes",
        json={
            "choice": encrypt_for(pub, int(choice), EUINT8).to_dict(),
            "weight": encrypt_for(pub, weight, EUINT32).to_dict(),
        },
        headers=_headers(client, voter),
    )


def test_full_flow_propose_vote_reveal_execute(client):
    pub = _pub(client)

    rv = client.post("/proposals", json={"proposal_id": 1, "snapshot": 0, "deadline": 10, "quorum": 5})
    assert rv.status_code == 201
    assert client.post("/clock", json={"block": 1}).status_code == 200

    assert _vote(client, pub, "v1", VoteType.AGAINST, 5).status_code == 201
    assert _vote(client, pub, "v2", VoteType.FOR, 10).status_code == 201
    assert _vote(client, pub, "v3", VoteType.ABSTAIN, 2).status_code == 201

    rv = _vote(client, pub, "v1", VoteType.FOR, 1)
    assert rv.status_code == 409
    assert rv.get_json()["error"] == "duplicate_vote"
    assert client.get("/proposals/1/votes/v1").get_json() == {"has_voted": True}
    assert set(client.get("/proposals/1/encrypted-votes").get_json()) == {"against", "for", "abstain"}

    client.post("/clock", json={"block": 11})
    assert client.post("/proposals/1/outcome", json={"succeeded": True}).status_code == 200
    state = client.get("/proposals/1/state").get_json()
    assert state == {"state": "AwaitingDecryption", "decryption_state": "NotRequested"}

    rv = client.post("/proposals/1/execute")
    assert rv.status_code == 400
    assert rv.get_json()["error"] == "tally_not_decrypted"

    # unauthenticated / unauthorized reveal
    assert client.post("/proposals/1/reveal").status_code == 403
    assert client.post("/proposals/1/reveal", headers=_headers(client, "v1")).status_code == 403

    rv = client.post("/proposals/1/reveal", headers=_headers(client, "admin"))
    assert rv.status_code == 202
    request_id = rv.get_json()["request_id"]
    assert client.get("/proposals/1/state").get_json()["state"] == "DecryptionInProgress"
    assert client.get("/proposals/1/tally").status_code == 400

    rv = client.post("/oracle/fulfill")
    assert rv.get_json() == {"fulfilled": [request_id], "failed": []}
    assert client.get("/proposals/1/tally").get_json() == {"against": 5, "for": 10, "abstain": 2}

    # replay through the external callback endpoint
    rv = client.post(
        "/oracle/callback",
        json={"request_id": request_id, "values": [0, 0, 0]},
        headers=_headers(client, "gateway"),
    )
    assert rv.status_code == 409
    assert rv.get_json()["error"] == "invalid_request_id"

    assert client.post("/proposals/1/execute").get_json() == {"status": "executed"}
    assert client.get("/proposals/1/state").get_json()["state"] == "Executed"


def test_callback_requires_oracle_identity(client):
    rv = client.post(
        "/oracle/callback",
        json={"request_id": "abc", "values": [1, 2, 3]},
        headers=_headers(client, "admin"),
    )
    assert rv.status_code == 403
    assert rv.get_json()["error"] == "not_oracle"


def test_auth_requires_caller_secret(client):
    # no proof, no challenge, wrong secret: no MAC for the oracle identity
    assert client.post("/auth", json={"address": "gateway"}).status_code == 400
    assert client.post("/auth", json={"address": "gateway", "proof": "00" * 32}).status_code == 403
    assert _login(client, "gateway", secret=b"guessed-secret").status_code == 403

    rv = client.post(
        "/oracle/callback",
        json={"request_id": "abc", "values": [0, 999, 0]},
        headers={"X-Caller": "gateway", "X-Caller-Mac": "00" * 32},
    )
    assert rv.status_code == 403
    assert rv.get_json()["error"] == "not_oracle"


def test_auth_challenge_is_single_use(client):
    challenge = client.post("/auth/challenge", json={"address": "admin"}).get_json()["challenge"]
    secret = derive_caller_secret(TOKEN_KEY.encode("utf-8"), "admin")
    body = {"address": "admin", "proof": prove_auth(secret, bytes.fromhex(challenge)).hex()}
    assert client.post("/auth", json=body).status_code == 200
    assert client.post("/auth", json=body).status_code == 403


def test_vote_requires_matching_caller(client):
    pub = _pub(client)
    client.post("/proposals", json={"proposal_id": 1, "snapshot": 0, "deadline": 10})
    client.post("/clock", json={"block": 1})
    body = {
        "choice": encrypt_for(pub, int(VoteType.FOR), EUINT8).to_dict(),
        "weight": encrypt_for(pub, 1, EUINT32).to_dict(),
    }

    rv = client.post("/proposals/1/votes", json=body)
    assert rv.status_code == 403
    assert rv.get_json()["error"] == "not_authenticated"

    rv = client.post("/proposals/1/votes", json=dict(body, voter="v2"), headers=_headers(client, "v1"))
    assert rv.status_code == 403
    assert client.get("/proposals/1/votes/v2").get_json() == {"has_voted": False}
    assert client.get("/proposals/1/votes/v1").get_json() == {"has_voted": False}

    rv = client.post("/proposals/1/votes", json=dict(body, voter="v2"), headers=_headers(client, "v2"))
    assert rv.status_code == 201


def test_undecryptable_tally_does_not_block_other_reveals(client):
    pub = _pub(client)
    for pid in (1, 2):
        client.post("/proposals", json={"proposal_id": pid, "snapshot": 0, "deadline": 10})
    client.post("/clock", json={"block": 1})
    # above the gateway's decrypt bound of 65535
    assert _vote(client, pub, "whale", VoteType.FOR, 70000, proposal_id=1).status_code == 201
    assert _vote(client, pub, "v1", VoteType.FOR, 3, proposal_id=2).status_code == 201
    client.post("/clock", json={"block": 11})

    admin = _headers(client, "admin")
    stuck = client.post("/proposals/1/reveal", headers=admin).get_json()["request_id"]
    ok = client.post("/proposals/2/reveal", headers=admin).get_json()["request_id"]

    rv = client.post("/oracle/fulfill")
    assert rv.status_code == 200
    assert rv.get_json() == {"fulfilled": [ok], "failed": [stuck]}
    assert client.get("/proposals/2/tally").get_json() == {"against": 0, "for": 3, "abstain": 0}
    assert client.get("/proposals/1/state").get_json()["state"] == "DecryptionInProgress"


def test_unknown_proposal_and_bad_input(client):
    assert client.get("/proposals/42/state").status_code == 404
    assert client.post("/proposals", json={"proposal_id": "x"}).status_code == 400
    rv = client.post(
        "/proposals/1/votes",
        json={"choice": {"c1": "zz"}, "weight": {}},
        headers=_headers(client, "v"),
    )
    assert rv.status_code == 400
    assert client.post("/auth/challenge", json={}).status_code == 400
    assert client.post("/init").status_code == 400
