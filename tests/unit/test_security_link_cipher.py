"""
Unit tests for the keystream generator and the keystream-under-AEAD link
cipher. Encrypt and decrypt always use separate instances built from the
same seed, one per direction.
"""

import os

import pytest

from seifcore.core.exceptions import AuthenticationError, InvalidKeyLengthError
from seifcore.security.keystream import MASK64, PCGKeystream, seed_from_bytes
from seifcore.security.link_cipher import LinkCipher

KEY = bytes(range(32))
SEED = b"\x00\x01\x02\x03\x04\x05\x06\x07"


@pytest.fixture
def pair():
    return LinkCipher(SEED), LinkCipher(SEED)


# ============================================================================
# Keystream
# ============================================================================


def test_seed_from_bytes_big_endian():
    assert seed_from_bytes(b"\x01\x02") == 0x0102
    assert seed_from_bytes(b"") == 0


def test_seed_from_bytes_keeps_low_64_bits():
    assert seed_from_bytes(b"\xff" + b"\x00" * 8) == 0
    assert seed_from_bytes(b"\xff" * 12) == MASK64


def test_keystream_reproducible():
    a, b = PCGKeystream(SEED), PCGKeystream(SEED)
    assert a.read(40) == b.read(40)
    assert a.read(3) == b.read(3)


def test_keystream_int_and_bytes_seed_agree():
    assert PCGKeystream(b"\xff" * 8).read(16) == PCGKeystream(MASK64).read(16)


def test_keystream_words_are_little_endian():
    a, b = PCGKeystream(SEED), PCGKeystream(SEED)
    assert a.read(8) == b.next_word().to_bytes(8, "little")


def test_keystream_truncates_last_word():
    a, b = PCGKeystream(SEED), PCGKeystream(SEED)
    assert a.read(5) == b.read(8)[:5]
    assert a.bytes_drawn == 5


def test_keystream_different_seeds():
    assert PCGKeystream(1).read(16) != PCGKeystream(2).read(16)


def test_keystream_zero_read():
    ks = PCGKeystream(SEED)
    assert ks.read(0) == b""
    assert ks.bytes_drawn == 0


# ============================================================================
# LinkCipher
# ============================================================================


def test_round_trip(pair):
    sender, receiver = pair
    cipher = sender.encrypt(KEY, b"Hello")
    assert receiver.decrypt(KEY, cipher) == b"Hello"


def test_round_trip_sequence(pair):
    sender, receiver = pair
    messages = [b"first", b"", os.urandom(100), b"last message"]
    for message in messages:
        assert receiver.decrypt(KEY, sender.encrypt(KEY, message)) == message
    assert sender.position == receiver.position


def test_ciphertext_shape(pair):
    sender, _ = pair
    cipher = sender.encrypt(KEY, b"Hello")
    assert len(cipher) == len(b"Hello") + 16
    assert b"Hello" not in cipher


def test_same_message_different_keystream_position(pair):
    sender, _ = pair
    assert sender.encrypt(KEY, b"Hello") != sender.encrypt(KEY, b"Hello")


def test_different_seed_gives_wrong_plaintext():
    """AEAD still passes; only the keystream layer differs."""
    cipher = LinkCipher(SEED).encrypt(KEY, b"Hello world")
    assert LinkCipher(b"other").decrypt(KEY, cipher) != b"Hello world"


def test_drifted_receiver_gives_wrong_plaintext(pair):
    sender, receiver = pair
    receiver.encrypt(KEY, b"x" * 8)
    cipher = sender.encrypt(KEY, b"Hello world")
    assert receiver.decrypt(KEY, cipher) != b"Hello world"


def test_wrong_key_fails(pair):
    sender, receiver = pair
    cipher = sender.encrypt(KEY, b"Hello")
    with pytest.raises(AuthenticationError):
        receiver.decrypt(b"\xff" * 32, cipher)
    assert receiver.position == 0


def test_every_tampered_byte_fails():
    cipher = LinkCipher(SEED).encrypt(KEY, b"sixteen bytes!!!")
    for i in range(len(cipher)):
        tampered = bytearray(cipher)
        tampered[i] ^= 0x80
        with pytest.raises(AuthenticationError):
            LinkCipher(SEED).decrypt(KEY, bytes(tampered))


def test_truncated_cipher_fails(pair):
    sender, receiver = pair
    cipher = sender.encrypt(KEY, b"Hello")
    with pytest.raises(AuthenticationError):
        receiver.decrypt(KEY, cipher[:-1])


@pytest.mark.parametrize("length", [0, 16, 31, 33])
def test_key_length_checked(length):
    cipher = LinkCipher(SEED)
    with pytest.raises(InvalidKeyLengthError, match="Incorrect Arguments"):
        cipher.encrypt(b"k" * length, b"Hello")
    with pytest.raises(InvalidKeyLengthError, match="Incorrect Arguments"):
        cipher.decrypt(b"k" * length, b"\x00" * 21)
    assert cipher.position == 0


def test_key_length_error_is_value_error():
    with pytest.raises(ValueError):
        LinkCipher(SEED).encrypt(b"short", b"Hello")
