from __future__ import annotations

import secrets
from dataclasses import dataclass
from math import ceil, isqrt
from typing import Tuple

# RFC 3526 1536-bit MODP Group (Group 5) prime p
# Source for prime: https://datatracker.ietf.org/doc/html/rfc3526
_P_HEX = (
    "FFFFFFFFFFFFFFFFC90FDAA22168C234C4C6628B80DC1CD1"
    "29024E088A67CC74020BBEA63B139B22514A08798E3404DD"
    "EF9519B3CD3A431B302B0A6DF25F14374FE1356D6D51C245"
    "E485B576625E7EC6F44C42E9A637ED6B0BFF5CB6F406B7ED"
    "EE386BFB5A899FA5AE9F24117C4B1FE649286651ECE45B3D"
    "C2007CB8A163BF0598DA48361C55D39A69163FA8FD24CF5F"
    "83655D23DCA3AD961C62F356208552BB9ED529077096966D"
    "670C354E4ABC9804F1746C08CA237327FFFFFFFFFFFFFFFF"
)

UINT32_MAX = 2**32 - 1

Ciphertext = Tuple[int, int]


@dataclass(frozen=True)
class ElGamalParams:
    """ElGamal group params

    Attributes
    - p: safe prime modulus
    - q: large prime such that p = 2q + 1
    - g: generator (here: g=2)
    """

    p: int
    q: int
    g: int


@dataclass(frozen=True)
class ElGamalPublicKey:
    """ElGamal public key

    Attributes
    - params: the group parameters
    - y: public component y = g^x mod p
    """

    params: ElGamalParams
    y: int


@dataclass(frozen=True)
class ElGamalPrivateKey:
    """ElGamal private key

    Attributes
    - params: the group parameters
    - x: secret exponent in [1..q-1]
    """

    params: ElGamalParams
    x: int


def elgamal_params_default() -> ElGamalParams:
    """Return default RFC 3526 group-5 parameters

    The group is a safe prime with generator g=2. We compute q = (p-1)//2.
    """

    p = int(_P_HEX, 16)
    q = (p - 1) // 2
    g = 2

    return ElGamalParams(p=p, q=q, g=g)


def elgamal_keygen(params: ElGamalParams | None = None) -> Tuple[ElGamalPublicKey, ElGamalPrivateKey]:
    """Generate an ElGamal public and private key from the given parameters

    Uses the Python secrets module for strong randomness.
    """

    if params is None:
        params = elgamal_params_default()

    x = _rand_scalar(params.q)
    y = pow(params.g, x, params.p)

    return ElGamalPublicKey(params=params, y=y), ElGamalPrivateKey(params=params, x=x)


def _rand_scalar(q: int) -> int:
    """Return a random scalar in [1 to q-1]"""

    return secrets.randbelow(q - 1) + 1


def elgamal_encrypt(pub: ElGamalPublicKey, m: int, r: int | None = None) -> Ciphertext:
    """Encrypt an unsigned integer using ElGamal exponent encoding

    Args
    - pub: public key
    - m: message in [0, 2^32). Tally weights and choice tags both fit
    - r: optional randomness; sampled uniformly in [1 to q-1] if None.
         r=0 gives the trivial (publicly known) encryption of m

    Returns: tuple (c1, c2)
    """

    if not 0 <= m <= UINT32_MAX:
        raise ValueError("This encryptor expects m in [0, 2^32).")
    params = pub.params

    if r is None:
        r = _rand_scalar(params.q)

    c1 = pow(params.g, r, params.p)
    c2 = (pow(pub.y, r, params.p) * pow(params.g, m, params.p)) % params.p

    return c1, c2


def ciphertext_add(a: Ciphertext, b: Ciphertext, p: int) -> Ciphertext:
    """Homomorphic addition of two ElGamal ciphertexts modulo p

    Enc(m1) * Enc(m2) = Enc(m1 + m2), component by component.
    """

    return (a[0] * b[0]) % p, (a[1] * b[1]) % p


def ciphertext_pow(a: Ciphertext, k: int, p: int) -> Ciphertext:
    """Scale the plaintext under a ciphertext: Enc(m)^k = Enc(k * m)"""

    return pow(a[0], k, p), pow(a[1], k, p)


def rerandomize(pub: ElGamalPublicKey, c: Ciphertext) -> Ciphertext:
    """Multiply by a fresh encryption of zero so the result is unlinkable to c"""

    return ciphertext_add(c, elgamal_encrypt(pub, 0), pub.params.p)


def group_element(priv: ElGamalPrivateKey, c: Ciphertext) -> int:
    """Strip the mask from a ciphertext and return g^m mod p"""

    c1, c2 = c
    params = priv.params
    s = pow(c1, priv.x, params.p)
    # Inverse modulo p (p is prime). Using Fermat: s^(p-2) mod p
    s_inv = pow(s, params.p - 2, params.p)

    return (c2 * s_inv) % params.p


def elgamal_decrypt_int(priv: ElGamalPrivateKey, c: Ciphertext, max_k: int) -> int | None:
    """Decrypt a ciphertext and recover m in [0, max_k] via discrete log

    Returns None when the plaintext lies outside the searched range.
    """

    m_elem = group_element(priv, c)
    return discrete_log(priv.params.g, m_elem, priv.params.p, max_k)


def discrete_log_small(base: int, value: int, p: int, max_k: int) -> int | None:
    """Brute-force discrete log for small ranges (0 to max_k)

    Returns k if base^k ≡ value (mod p), else None
    """

    cur = 1
    if value == 1:
        return 0

    for k in range(1, max_k + 1):
        cur = (cur * base) % p
        if cur == value:
            return k

    return None


def discrete_log_bsgs(base: int, value: int, p: int, max_k: int) -> int | None:
    """Baby-step giant-step discrete log: find k <= max_k with base^k = value (mod p)"""

    if value == 1:
        return 0

    m = isqrt(max_k) + 1

    # Baby steps: base^j -> j for j in [0, m)
    baby = {}
    cur = 1
    for j in range(m):
        if cur not in baby:
            baby[cur] = j
        cur = (cur * base) % p

    base_m_inv = pow(pow(base, m, p), p - 2, p)

    # Giant steps: value * (base^{-m})^i
    gamma = value
    for i in range(ceil(max_k / m) + 1):
        if gamma in baby:
            k = i * m + baby[gamma]
            return k if k <= max_k else None
        gamma = (gamma * base_m_inv) % p

    return None


def discrete_log(base: int, value: int, p: int, max_k: int) -> int | None:
    """Choose an appropriate discrete-log routine based on max_k."""

    if max_k <= 64:
        return discrete_log_small(base, value, p, max_k)
    return discrete_log_bsgs(base, value, p, max_k)
