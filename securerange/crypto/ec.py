"""
secp256k1 scalar/point primitives and EC key-object construction.

All scalars are plain Python ints reduced modulo the curve order N.
Points leave this module only as 33-byte compressed SEC1 encodings.

Key objects are built from raw key material by assembling the standard DER
structures by hand:

    ECPrivateKey (RFC 5915 / SEC1):
        SEQUENCE { INTEGER 1, OCTET STRING priv32,
                   [0] OID secp256k1, [1] BIT STRING uncompressed-point }

    SubjectPublicKeyInfo (RFC 5480):
        SEQUENCE { SEQUENCE { OID id-ecPublicKey, OID secp256k1 },
                   BIT STRING uncompressed-point }

and handing the result to `cryptography`'s DER loaders.
"""

import os
from typing import List

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from securerange.common.utils import sha256, int_from_be
from securerange.errors import CryptoInvariantError

CURVE = ec.SECP256K1()

# secp256k1 group order
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

PRIVATE_KEY_LEN = 32
COMPRESSED_POINT_LEN = 33

OID_EC_PUBLIC_KEY = (1, 2, 840, 10045, 2, 1)
OID_SECP256K1 = (1, 3, 132, 0, 10)


# ------------------------ Scalars ------------------------

def mod_n(x: int) -> int:
    """Canonical nonnegative reduction of x modulo the curve order."""
    return x % SECP256K1_N


def random_scalar() -> int:
    """Uniform scalar in [0, N-1] (64 random bytes reduced, bias < 2**-256)."""
    return mod_n(int_from_be(os.urandom(64)))


def random_scalar_nonzero() -> int:
    """Uniform scalar in [1, N-1]."""
    while True:
        k = random_scalar()
        if k != 0:
            return k


def hash_to_scalar(domain: str) -> int:
    """
    Deterministic scalar mod_n(SHA256(domain)).

    The result is used as a fixed domain-separated multiplier h, so that
    "h*G" plays the role of a second base. It is NOT an independently
    generated point with unknown discrete log; anyone can compute h.
    """
    return mod_n(int_from_be(sha256(domain)))


def scalar_mul_g(k: int) -> bytes:
    """
    Return k*G as a 33-byte compressed point.

    Raises CryptoInvariantError if k = 0 mod N (the identity has no
    SEC1 compressed encoding and must never appear in a commitment).
    """
    k = mod_n(k)
    if k == 0:
        raise CryptoInvariantError("scalar is zero mod n")
    pub = ec.derive_private_key(k, CURVE).public_key()
    return pub.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.CompressedPoint,
    )


def decompress_point(pub33: bytes) -> bytes:
    """33-byte compressed point -> 65-byte uncompressed point. Validates the point."""
    if len(pub33) != COMPRESSED_POINT_LEN:
        raise ValueError("compressed point must be 33 bytes")
    pub = ec.EllipticCurvePublicKey.from_encoded_point(CURVE, pub33)
    return pub.public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )


# ------------------------ Minimal DER builders ------------------------

def _der_length(n: int) -> bytes:
    if n < 0x80:
        return bytes([n])
    body = n.to_bytes((n.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(body)]) + body


def _der_tlv(tag: int, value: bytes) -> bytes:
    return bytes([tag]) + _der_length(len(value)) + value


def _der_sequence(*children: bytes) -> bytes:
    return _der_tlv(0x30, b"".join(children))


def _der_small_int(n: int) -> bytes:
    if not 0 <= n < 0x80:
        raise ValueError("integer out of range")
    return _der_tlv(0x02, bytes([n]))


def _der_octet_string(data: bytes) -> bytes:
    return _der_tlv(0x04, data)


def _der_bit_string(data: bytes) -> bytes:
    # leading octet: number of unused bits in the last byte
    return _der_tlv(0x03, b"\x00" + data)


def _der_oid(arcs) -> bytes:
    if len(arcs) < 2:
        raise ValueError("oid too short")
    out: List[int] = [arcs[0] * 40 + arcs[1]]
    for arc in arcs[2:]:
        if arc < 0:
            raise ValueError("invalid oid arc")
        chunk = [arc & 0x7F]
        arc >>= 7
        while arc:
            chunk.insert(0, 0x80 | (arc & 0x7F))
            arc >>= 7
        out.extend(chunk)
    return _der_tlv(0x06, bytes(out))


def _der_explicit(tag_no: int, inner: bytes) -> bytes:
    # [tag_no] EXPLICIT, constructed
    return _der_tlv(0xA0 + tag_no, inner)


# ------------------------ Key objects ------------------------

def encode_ec_private_key_der(priv32: bytes) -> bytes:
    """
    Build the SEC1 ECPrivateKey DER for a raw 32-byte secp256k1 scalar.

    :param priv32: big-endian private scalar, must be in [1, N-1]
    :return: DER bytes
    """
    if len(priv32) != PRIVATE_KEY_LEN:
        raise ValueError("private key must be 32 bytes")
    d = int_from_be(priv32)
    if not 0 < d < SECP256K1_N:
        raise ValueError("private scalar out of range [1, n-1]")

    pub_uncompressed = ec.derive_private_key(d, CURVE).public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.UncompressedPoint,
    )
    return _der_sequence(
        _der_small_int(1),
        _der_octet_string(priv32),
        _der_explicit(0, _der_oid(OID_SECP256K1)),
        _der_explicit(1, _der_bit_string(pub_uncompressed)),
    )


def encode_ec_public_key_der(pub33: bytes) -> bytes:
    """
    Build the SubjectPublicKeyInfo DER for a 33-byte compressed secp256k1 point.
    """
    pub_uncompressed = decompress_point(pub33)
    algorithm = _der_sequence(_der_oid(OID_EC_PUBLIC_KEY), _der_oid(OID_SECP256K1))
    return _der_sequence(algorithm, _der_bit_string(pub_uncompressed))


def private_key_from_bytes(priv32: bytes) -> ec.EllipticCurvePrivateKey:
    """Load a raw 32-byte scalar as a `cryptography` EC private key."""
    der = encode_ec_private_key_der(priv32)
    return serialization.load_der_private_key(der, password=None)


def public_key_from_compressed(pub33: bytes) -> ec.EllipticCurvePublicKey:
    """Load a 33-byte compressed point as a `cryptography` EC public key."""
    der = encode_ec_public_key_der(pub33)
    return serialization.load_der_public_key(der)


def compressed_public_key(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    """33-byte compressed public point of a private key."""
    return private_key.public_key().public_bytes(
        serialization.Encoding.X962,
        serialization.PublicFormat.CompressedPoint,
    )


def private_key_to_bytes(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    """Raw 32-byte big-endian private scalar."""
    return private_key.private_numbers().private_value.to_bytes(PRIVATE_KEY_LEN, "big")
