"""
Field arithmetic, bit packing, input hashing and Poseidon encryption
"""

import hashlib

import pytest

from fieldmath.cipher import DecryptionError, poseidon_decrypt, poseidon_encrypt
from fieldmath.field import (SNARK_FIELD_SIZE, field_add, field_inverse, field_mul, field_neg,
                             field_sqrt, field_sub, select, select_point)
from fieldmath.input_hash import compute_input_hash, encode_packed_uint256
from fieldmath.packing import pack_process_vals, pack_tally_vals, pack_words, unpack_words

P = SNARK_FIELD_SIZE


class TestFieldArithmetic:

    def test_reduction(self):
        assert field_add(P - 1, 2) == 1
        assert field_sub(0, 1) == P - 1
        assert field_neg(5) == P - 5
        assert field_mul(P - 1, P - 1) == 1

    def test_inverse(self):
        for value in (1, 2, 12345, P - 1):
            assert field_mul(value, field_inverse(value)) == 1

    def test_inverse_of_zero(self):
        with pytest.raises(ZeroDivisionError):
            field_inverse(0)

    def test_sqrt(self):
        assert field_sqrt(4) == 2
        root = field_sqrt(field_mul(987654321, 987654321))
        assert root in (987654321, P - 987654321)

    def test_sqrt_of_non_residue(self):
        # 5 generates the multiplicative group, so it is not a square
        assert field_sqrt(5) is None

    def test_select(self):
        assert select(1, 7, 9) == 7
        assert select(0, 7, 9) == 9
        assert select_point(1, (1, 2), (3, 4)) == (1, 2)
        assert select_point(0, (1, 2), (3, 4)) == (3, 4)

    def test_select_rejects_non_boolean(self):
        with pytest.raises(ValueError):
            select(2, 7, 9)


class TestPacking:

    def test_pack_words(self):
        packed = pack_words([1, 2, 3], [32, 32, None])
        assert packed == 1 + (2 << 32) + (3 << 64)
        assert unpack_words(packed, [32, 32, None]) == [1, 2, 3]

    def test_overflowing_window(self):
        with pytest.raises(ValueError):
            pack_words([1 << 32, 0], [32, None])

    def test_negative_value(self):
        with pytest.raises(ValueError):
            pack_words([-1], [32])

    def test_process_vals(self):
        assert pack_process_vals(5, 10, False) == 5 + (10 << 32)
        assert pack_process_vals(5, 10, True) == 5 + (10 << 32) + (1 << 64)

    def test_tally_vals(self):
        assert pack_tally_vals(3, 10) == 3 + (10 << 32)


class TestInputHash:

    def test_matches_sha256_reduced_into_field(self):
        values = [1, 2, P - 1]
        data = b"".join(v.to_bytes(32, "big") for v in values)
        expected = int.from_bytes(hashlib.sha256(data).digest(), "big") % P
        assert compute_input_hash(values) == expected

    def test_rejects_non_uint256(self):
        with pytest.raises(ValueError):
            encode_packed_uint256([1 << 256])

    def test_order_matters(self):
        assert compute_input_hash([1, 2]) != compute_input_hash([2, 1])


class TestPoseidonCipher:

    KEY = (123, 456)

    def test_round_trip(self):
        message = [1, 2, 3, 4, 5, 6]
        ciphertext = poseidon_encrypt(message, self.KEY, 0)
        assert len(ciphertext) == 7
        assert poseidon_decrypt(ciphertext, self.KEY, 0, 6) == message

    def test_padded_length(self):
        ciphertext = poseidon_encrypt([9, 8], self.KEY, 3)
        assert len(ciphertext) == 4
        assert poseidon_decrypt(ciphertext, self.KEY, 3, 2) == [9, 8]

    def test_tampered_ciphertext(self):
        ciphertext = poseidon_encrypt([1, 2, 3, 4, 5, 6], self.KEY, 0)
        ciphertext[2] = (ciphertext[2] + 1) % P
        with pytest.raises(DecryptionError):
            poseidon_decrypt(ciphertext, self.KEY, 0, 6)

    def test_wrong_key(self):
        ciphertext = poseidon_encrypt([1, 2, 3, 4, 5, 6], self.KEY, 0)
        with pytest.raises(DecryptionError):
            poseidon_decrypt(ciphertext, (124, 456), 0, 6)

    def test_wrong_length(self):
        ciphertext = poseidon_encrypt([1, 2, 3], self.KEY, 0)
        with pytest.raises(DecryptionError):
            poseidon_decrypt(ciphertext, self.KEY, 0, 6)

    def test_nonce_bound(self):
        with pytest.raises(ValueError):
            poseidon_encrypt([1], self.KEY, 1 << 128)
