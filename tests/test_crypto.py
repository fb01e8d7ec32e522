"""
Curve primitive, key encoding and signature tests.
"""

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from securerange.common.utils import sha256
from securerange.crypto.ec import (
    CURVE,
    SECP256K1_N,
    compressed_public_key,
    encode_ec_private_key_der,
    encode_ec_public_key_der,
    hash_to_scalar,
    mod_n,
    private_key_from_bytes,
    private_key_to_bytes,
    public_key_from_compressed,
    random_scalar,
    random_scalar_nonzero,
    scalar_mul_g,
)
from securerange.crypto.sign import SIGNATURE_LEN, ecdsa_sign, ecdsa_verify
from securerange.errors import CryptoInvariantError

G_HEX = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
TWO_G_HEX = "02c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5"


class TestScalars:

    def test_mod_n_is_canonical(self):
        assert mod_n(-1) == SECP256K1_N - 1
        assert mod_n(SECP256K1_N) == 0
        assert mod_n(SECP256K1_N + 5) == 5
        assert mod_n(-SECP256K1_N * 3 - 2) == SECP256K1_N - 2

    def test_random_scalars_in_range(self):
        for _ in range(200):
            assert 0 <= random_scalar() < SECP256K1_N
            assert 1 <= random_scalar_nonzero() < SECP256K1_N

    def test_hash_to_scalar(self):
        h = hash_to_scalar("H")
        assert h == int.from_bytes(sha256(b"H"), "big") % SECP256K1_N
        assert h != 0
        assert hash_to_scalar("H") == h
        assert hash_to_scalar("other") != h


class TestScalarMulG:

    def test_known_points(self):
        assert scalar_mul_g(1).hex() == G_HEX
        assert scalar_mul_g(2).hex() == TWO_G_HEX

    def test_reduces_mod_n(self):
        assert scalar_mul_g(SECP256K1_N + 1) == scalar_mul_g(1)
        assert scalar_mul_g(-1) == scalar_mul_g(SECP256K1_N - 1)

    @pytest.mark.parametrize("k", [0, SECP256K1_N, -SECP256K1_N])
    def test_zero_scalar_rejected(self, k):
        with pytest.raises(CryptoInvariantError):
            scalar_mul_g(k)

    def test_compressed_length(self):
        p = scalar_mul_g(random_scalar_nonzero())
        assert len(p) == 33
        assert p[0] in (2, 3)


class TestKeyEncoding:

    def test_private_der_matches_openssl(self):
        key = ec.generate_private_key(CURVE)
        raw = private_key_to_bytes(key)
        expected = key.private_bytes(
            serialization.Encoding.DER,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )
        assert encode_ec_private_key_der(raw) == expected

    def test_public_der_matches_openssl(self):
        key = ec.generate_private_key(CURVE)
        expected = key.public_key().public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        assert encode_ec_public_key_der(compressed_public_key(key)) == expected

    def test_private_key_object_round_trip(self):
        raw = (123456789).to_bytes(32, "big")
        key = private_key_from_bytes(raw)
        assert isinstance(key.curve, ec.SECP256K1)
        assert private_key_to_bytes(key) == raw
        assert compressed_public_key(key) == scalar_mul_g(123456789)

    def test_public_key_object(self):
        pub = public_key_from_compressed(bytes.fromhex(TWO_G_HEX))
        assert isinstance(pub.curve, ec.SECP256K1)
        assert pub.public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.CompressedPoint,
        ).hex() == TWO_G_HEX

    @pytest.mark.parametrize("raw", [
        bytes(32),
        SECP256K1_N.to_bytes(32, "big"),
        b"\x01" * 31,
    ])
    def test_bad_private_key(self, raw):
        with pytest.raises(ValueError):
            private_key_from_bytes(raw)

    def test_bad_public_point(self):
        with pytest.raises(ValueError):
            public_key_from_compressed(b"\x02" + b"\xff" * 32)
        with pytest.raises(ValueError):
            public_key_from_compressed(bytes.fromhex(G_HEX)[:32])


class TestSignatures:

    @pytest.fixture
    def keypair(self):
        priv = ec.generate_private_key(CURVE)
        pub = public_key_from_compressed(compressed_public_key(priv))
        return priv, pub

    def test_round_trip(self, keypair):
        priv, pub = keypair
        msg = b"DEMO-SERIAL-0001"
        sig = ecdsa_sign(priv, msg)
        assert len(sig) == SIGNATURE_LEN
        assert ecdsa_verify(pub, msg, sig)

    def test_flipped_message_bit_fails(self, keypair):
        priv, pub = keypair
        msg = b"nonce-01"
        sig = ecdsa_sign(priv, msg)
        for i in range(len(msg) * 8):
            tampered = bytearray(msg)
            tampered[i // 8] ^= 1 << (i % 8)
            assert not ecdsa_verify(pub, bytes(tampered), sig)

    def test_flipped_signature_bit_fails(self, keypair):
        priv, pub = keypair
        msg = b"nonce-02"
        sig = ecdsa_sign(priv, msg)
        for i in range(SIGNATURE_LEN * 8):
            tampered = bytearray(sig)
            tampered[i // 8] ^= 1 << (i % 8)
            assert not ecdsa_verify(pub, msg, bytes(tampered))

    def test_wrong_key_fails(self, keypair):
        priv, _ = keypair
        other = ec.generate_private_key(CURVE).public_key()
        assert not ecdsa_verify(other, b"m", ecdsa_sign(priv, b"m"))

    @pytest.mark.parametrize("sig", [b"", bytes(63), bytes(65), bytes(64)])
    def test_malformed_signature_is_false(self, keypair, sig):
        _, pub = keypair
        assert ecdsa_verify(pub, b"m", sig) is False
