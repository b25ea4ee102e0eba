"""Encrypted unsigned integers and the operations the tally needs on them.

The ``Coprocessor`` owns the ElGamal key pair. Addition is carried out purely
homomorphically; comparison and selection go beyond what additive ElGamal can
do on its own and are evaluated inside the key holder, which stands in for a
full FHE evaluator. Callers only ever hold ``Ciphertext`` handles.

Every operation appends a ``(name, bits)`` record to ``trace`` so that the
shape of a computation can be compared across inputs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from . import secrecy
from .errors import DecryptionFailure

log = logging.getLogger(__name__)

EBOOL = 1
EUINT8 = 8
EUINT32 = 32
_WIDTHS = (EBOOL, EUINT8, EUINT32)


@dataclass(frozen=True)
class Ciphertext:
    """Opaque encrypted integer

    Attributes
    - c1, c2: ElGamal ciphertext components
    - bits: declared plaintext width (1 = ebool, 8 = euint8, 32 = euint32)
    """

    c1: int
    c2: int
    bits: int = EUINT32

    @property
    def pair(self) -> Tuple[int, int]:
        return self.c1, self.c2

    def to_dict(self) -> Dict[str, Any]:
        return {"c1": hex(self.c1), "c2": hex(self.c2), "bits": self.bits}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ciphertext":
        try:
            c1 = int(data["c1"], 16) if isinstance(data["c1"], str) else int(data["c1"])
            c2 = int(data["c2"], 16) if isinstance(data["c2"], str) else int(data["c2"])
            bits = int(data.get("bits", EUINT32))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"malformed ciphertext: {e}") from None
        if bits not in _WIDTHS:
            raise ValueError(f"unsupported ciphertext width {bits}")
        return cls(c1=c1, c2=c2, bits=bits)


def _check_width(value: int, bits: int) -> None:
    if bits not in _WIDTHS:
        raise ValueError(f"unsupported ciphertext width {bits}")
    if not 0 <= value < 2**bits:
        raise ValueError(f"value does not fit in {bits} bits")


def encrypt_for(pub: secrecy.ElGamalPublicKey, value: int, bits: int = EUINT32) -> Ciphertext:
    """Client-side encryption of a vote input under the coprocessor's public key"""

    _check_width(value, bits)
    c1, c2 = secrecy.elgamal_encrypt(pub, value)
    return Ciphertext(c1=c1, c2=c2, bits=bits)


class Coprocessor:
    """Key holder and evaluator for encrypted integer operations

    Args
    - max_plaintext: largest value ``decrypt`` will search for
    - params: group parameters (RFC 3526 group 5 when omitted)
    """

    def __init__(self, max_plaintext: int = secrecy.UINT32_MAX, params: secrecy.ElGamalParams | None = None):
        self.public_key, self._private_key = secrecy.elgamal_keygen(params)
        self.max_plaintext = max_plaintext
        self.trace: List[Tuple[str, int]] = []

    @property
    def _p(self) -> int:
        return self.public_key.params.p

    def _record(self, op: str, bits: int) -> None:
        self.trace.append((op, bits))
        log.debug("coprocessor op=%s bits=%d", op, bits)

    def encrypt(self, value: int, bits: int = EUINT32) -> Ciphertext:
        self._record("encrypt", bits)
        return encrypt_for(self.public_key, value, bits)

    def trivial(self, value: int, bits: int = EUINT32) -> Ciphertext:
        """Deterministic, publicly known encryption of a constant"""

        _check_width(value, bits)
        self._record("trivial", bits)
        c1, c2 = secrecy.elgamal_encrypt(self.public_key, value, r=0)
        return Ciphertext(c1=c1, c2=c2, bits=bits)

    def add(self, a: Ciphertext, b: Ciphertext) -> Ciphertext:
        bits = max(a.bits, b.bits)
        self._record("add", bits)
        c1, c2 = secrecy.ciphertext_add(a.pair, b.pair, self._p)
        return Ciphertext(c1=c1, c2=c2, bits=bits)

    def eq(self, a: Ciphertext, scalar: int) -> Ciphertext:
        """Encrypted boolean for ``a == scalar``"""

        self._record("eq", a.bits)
        params = self.public_key.params
        # Enc(a) * g^-scalar = Enc(a - scalar); equal exactly when the mask-free element is 1
        shift = pow(pow(params.g, scalar, params.p), params.p - 2, params.p)
        diff = (a.c1, (a.c2 * shift) % params.p)
        bit = int(secrecy.group_element(self._private_key, diff) == 1)
        c1, c2 = secrecy.elgamal_encrypt(self.public_key, bit)
        return Ciphertext(c1=c1, c2=c2, bits=EBOOL)

    def select(self, cond: Ciphertext, a: Ciphertext, b: Ciphertext) -> Ciphertext:
        """``a`` if ``cond`` else ``b``, as a^c * b^(1-c) re-randomized"""

        if cond.bits != EBOOL:
            raise TypeError("select condition must be an encrypted boolean")
        bits = max(a.bits, b.bits)
        self._record("select", bits)
        c = self._bit(cond)
        picked = secrecy.ciphertext_add(
            secrecy.ciphertext_pow(a.pair, c, self._p),
            secrecy.ciphertext_pow(b.pair, 1 - c, self._p),
            self._p,
        )
        c1, c2 = secrecy.rerandomize(self.public_key, picked)
        return Ciphertext(c1=c1, c2=c2, bits=bits)

    def _bit(self, cond: Ciphertext) -> int:
        m_elem = secrecy.group_element(self._private_key, cond.pair)
        # g^0 = 1, g^1 = g; anything else is not a boolean ciphertext
        if m_elem not in (1, self.public_key.params.g):
            raise ValueError("Ciphertext does not decrypt to a valid bit.")
        return int(m_elem != 1)

    def decrypt(self, c: Ciphertext) -> int:
        """Key-holder decryption, reserved for the decryption oracle"""

        value = secrecy.elgamal_decrypt_int(self._private_key, c.pair, self.max_plaintext)
        if value is None:
            raise DecryptionFailure(f"plaintext exceeds search bound {self.max_plaintext}")
        return value
