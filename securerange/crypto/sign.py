"""ECDSA secp256k1 + SHA-256 sign/verify with fixed 64-byte (r || s) signatures."""

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)

SIGNATURE_LEN = 64
_HALF = SIGNATURE_LEN // 2


def ecdsa_sign(private_key: ec.EllipticCurvePrivateKey, data: bytes) -> bytes:
    """
    Sign arbitrary data with ECDSA over SHA-256(data).

    :param private_key: secp256k1 private key
    :param data: message bytes (hashed internally)
    :return: 64-byte signature r || s, each 32 bytes big-endian
    """
    der = private_key.sign(data, ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    return r.to_bytes(_HALF, "big") + s.to_bytes(_HALF, "big")


def ecdsa_verify(public_key: ec.EllipticCurvePublicKey, data: bytes, signature: bytes) -> bool:
    """
    Verify a 64-byte r || s ECDSA SHA-256 signature.

    :param public_key: secp256k1 public key
    :param data: same bytes that were signed
    :param signature: 64-byte signature
    :return: True if valid, False otherwise
    """
    if len(signature) != SIGNATURE_LEN:
        return False
    r = int.from_bytes(signature[:_HALF], "big")
    s = int.from_bytes(signature[_HALF:], "big")
    if r == 0 or s == 0:
        return False
    try:
        public_key.verify(
            encode_dss_signature(r, s),
            data,
            ec.ECDSA(hashes.SHA256()),
        )
        return True
    except InvalidSignature:
        return False
