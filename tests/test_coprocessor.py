import pytest

from fhe_governor.coprocessor import EBOOL, EUINT8, EUINT32, Ciphertext, Coprocessor
from fhe_governor.errors import DecryptionFailure


@pytest.fixture(scope="module")
def cop():
    return Coprocessor(max_plaintext=1000)


def test_add_is_homomorphic(cop):
    total = cop.add(cop.encrypt(40), cop.encrypt(2))
    assert total.bits == EUINT32
    assert cop.decrypt(total) == 42


def test_eq_yields_encrypted_bool(cop):
    choice = cop.encrypt(2, EUINT8)
    hit = cop.eq(choice, 2)
    miss = cop.eq(choice, 1)
    assert hit.bits == EBOOL and miss.bits == EBOOL
    assert cop.decrypt(hit) == 1
    assert cop.decrypt(miss) == 0


def test_select_picks_operand_by_encrypted_condition(cop):
    a, b = cop.encrypt(7), cop.trivial(0)
    assert cop.decrypt(cop.select(cop.encrypt(1, EBOOL), a, b)) == 7
    assert cop.decrypt(cop.select(cop.encrypt(0, EBOOL), a, b)) == 0


def test_select_output_is_fresh(cop):
    a = cop.encrypt(7)
    picked = cop.select(cop.encrypt(1, EBOOL), a, cop.trivial(0))
    assert picked.pair != a.pair


def test_select_requires_bool_condition(cop):
    with pytest.raises(TypeError):
        cop.select(cop.encrypt(1, EUINT8), cop.encrypt(1), cop.encrypt(2))


def test_encrypt_enforces_declared_width(cop):
    with pytest.raises(ValueError):
        cop.encrypt(256, EUINT8)
    with pytest.raises(ValueError):
        cop.encrypt(2, EBOOL)
    with pytest.raises(ValueError):
        cop.trivial(1, 16)


def test_decrypt_beyond_bound_fails(cop):
    with pytest.raises(DecryptionFailure):
        cop.decrypt(cop.encrypt(5000))


def test_trace_records_operations():
    c = Coprocessor(max_plaintext=10)
    c.add(c.trivial(0), c.trivial(1))
    assert c.trace == [("trivial", 32), ("trivial", 32), ("add", 32)]


def test_ciphertext_wire_format(cop):
    ct = cop.encrypt(3, EUINT8)
    assert Ciphertext.from_dict(ct.to_dict()) == ct
    with pytest.raises(ValueError):
        Ciphertext.from_dict({"c1": "0x1"})
    with pytest.raises(ValueError):
        Ciphertext.from_dict({"c1": "0x1", "c2": "0x1", "bits": 16})
