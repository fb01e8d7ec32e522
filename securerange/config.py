"""
Client configuration: a key=value file loaded with python-dotenv and
validated into a typed ClientConfig.

    client_serial_id=DEMO-SERIAL-0001
    client_privkey_hex=<64 hex chars>
    server_pubkey_hex=<66 hex chars, compressed point>
"""

import os

from cryptography.hazmat.primitives.asymmetric import ec
from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from securerange.common.utils import hex_to_bytes
from securerange.crypto.ec import (
    COMPRESSED_POINT_LEN,
    PRIVATE_KEY_LEN,
    SECP256K1_N,
    decompress_point,
    private_key_from_bytes,
    public_key_from_compressed,
)
from securerange.errors import ConfigError

REQUIRED_KEYS = ("client_serial_id", "client_privkey_hex", "server_pubkey_hex")


class ClientConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_serial_id: str
    client_privkey_hex: str
    server_pubkey_hex: str

    @field_validator("client_serial_id")
    @classmethod
    def _serial_printable(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("client_serial_id is empty")
        if v != v.strip() or not v.isprintable():
            raise ValueError("client_serial_id has surrounding whitespace or control characters")
        return v

    @field_validator("client_privkey_hex")
    @classmethod
    def _valid_scalar(cls, v: str) -> str:
        d = int.from_bytes(hex_to_bytes(v, PRIVATE_KEY_LEN), "big")
        if not 0 < d < SECP256K1_N:
            raise ValueError("client private key out of range [1, n-1]")
        return v.strip()

    @field_validator("server_pubkey_hex")
    @classmethod
    def _valid_point(cls, v: str) -> str:
        decompress_point(hex_to_bytes(v, COMPRESSED_POINT_LEN))
        return v.strip()

    @property
    def serial_id(self) -> bytes:
        return self.client_serial_id.encode("utf-8")

    def client_private_key(self) -> ec.EllipticCurvePrivateKey:
        return private_key_from_bytes(hex_to_bytes(self.client_privkey_hex, PRIVATE_KEY_LEN))

    def server_public_key(self) -> ec.EllipticCurvePublicKey:
        return public_key_from_compressed(
            hex_to_bytes(self.server_pubkey_hex, COMPRESSED_POINT_LEN)
        )


def load_client_config(path: str) -> ClientConfig:
    """
    Read and validate the client config file.

    Raises ConfigError if the file is missing, a required key is absent or
    empty, or a value is malformed.
    """
    if not os.path.isfile(path):
        raise ConfigError(f"config file not found: {path}")

    # values are literal; no ${VAR} expansion
    raw = dotenv_values(path, interpolate=False)
    missing = [k for k in REQUIRED_KEYS if not (raw.get(k) or "").strip()]
    if missing:
        raise ConfigError(f"missing required client config keys: {', '.join(missing)}")

    try:
        return ClientConfig(**{k: raw[k].strip() for k in REQUIRED_KEYS})
    except ValidationError as e:
        raise ConfigError(f"invalid client config {path}: {e}") from e
