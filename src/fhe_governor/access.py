from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from typing import Dict, Iterable, Protocol, Set

from .errors import NotAuthorizedRevealer, NotOracle

log = logging.getLogger(__name__)

REVEALER_ROLE = "revealer"


class RoleRegistry(Protocol):
    def has_role(self, role: str, address: str) -> bool: ...


class InMemoryRoleRegistry:
    """Role membership keyed by role name then address"""

    def __init__(self, grants: Dict[str, Iterable[str]] | None = None):
        self._members: Dict[str, Set[str]] = {}
        for role, addresses in (grants or {}).items():
            for address in addresses:
                self.grant(role, address)

    def grant(self, role: str, address: str) -> None:
        self._members.setdefault(role, set()).add(address)

    def revoke(self, role: str, address: str) -> None:
        self._members.get(role, set()).discard(address)

    def has_role(self, role: str, address: str) -> bool:
        return address in self._members.get(role, ())


class AccessGuard:
    """Restricts who may request a reveal and who may deliver one

    Args
    - roles: lookup for the authorized-revealer role
    - oracle_address: the only identity allowed to deliver decryption results
    """

    def __init__(self, roles: RoleRegistry, oracle_address: str):
        self.roles = roles
        self.oracle_address = oracle_address

    def require_revealer(self, caller: str) -> None:
        if not self.roles.has_role(REVEALER_ROLE, caller):
            log.warning("reveal request rejected for %s", caller)
            raise NotAuthorizedRevealer(f"{caller} is not an authorized revealer")

    def require_oracle(self, caller: str) -> None:
        if not hmac.compare_digest(caller.encode("utf-8"), self.oracle_address.encode("utf-8")):
            log.warning("decryption result rejected from %s", caller)
            raise NotOracle(f"{caller} is not the decryption oracle")


## --- caller tokens for the HTTP surface ----------------------------------


def issue_caller_token(key: bytes, address: str) -> str:
    """MAC binding an address to the server's token key

    Args
    - key: server-side secret key for caller MACs
    - address: the identity the bearer may act as

    Returns: mac_hex
    """

    if not isinstance(key, (bytes, bytearray)):
        raise TypeError("key must be bytes")

    return hmac.new(key, b"caller-token:" + address.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_caller_token(key: bytes, address: str, mac_hex: str) -> bool:
    """Verify a presented caller MAC (server-side)"""

    expected = issue_caller_token(key, address)
    return hmac.compare_digest(expected, mac_hex)


## --- challenge / response for minting caller tokens ---------------------


def derive_caller_secret(key: bytes, address: str) -> bytes:
    """Per-address secret handed to a caller out of band

    Derived as HMAC(key, "caller-secret:" || address) so the server never
    stores it and it never equals the caller MAC itself.
    """

    if not isinstance(key, (bytes, bytearray)):
        raise TypeError("key must be bytes")

    return hmac.new(key, b"caller-secret:" + address.encode("utf-8"), hashlib.sha256).digest()


def build_auth_challenge(nbytes: int = 32) -> bytes:
    return secrets.token_bytes(nbytes)


def prove_auth(caller_secret: bytes, challenge: bytes) -> bytes:
    """HMAC proof over a challenge using the caller's secret"""

    return hmac.new(caller_secret, challenge, hashlib.sha256).digest()


def verify_auth_proof(key: bytes, address: str, challenge: bytes, proof: bytes) -> bool:
    expected = prove_auth(derive_caller_secret(key, address), challenge)
    return hmac.compare_digest(expected, proof)
