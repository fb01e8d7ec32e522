"""
Provision a client identity (secp256k1) using cryptography.
Generates:
    config/client.conf   (client_serial_id, client_privkey_hex, server_pubkey_hex)

and prints the client's compressed public key, which must be registered
with the verifier under the same serial id.
"""

import argparse
import os
import sys

from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import ValidationError

from securerange.config import ClientConfig, load_client_config
from securerange.crypto.ec import CURVE, compressed_public_key, private_key_to_bytes
from securerange.errors import ConfigError

DEFAULT_OUT = os.path.join("config", "client.conf")


def _quote(value: str) -> str:
    """Single-quote a value the way python-dotenv reads it back verbatim."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def render_config(serial_id: str, private_key: ec.EllipticCurvePrivateKey,
                  server_pubkey_hex: str) -> str:
    cfg = ClientConfig(
        client_serial_id=serial_id,
        client_privkey_hex=private_key_to_bytes(private_key).hex(),
        server_pubkey_hex=server_pubkey_hex,
    )
    return (
        "# range-proof client identity. DO NOT COMMIT.\n"
        f"client_serial_id={_quote(cfg.client_serial_id)}\n"
        f"client_privkey_hex={cfg.client_privkey_hex}\n"
        f"server_pubkey_hex={cfg.server_pubkey_hex}\n"
    )


def generate(serial_id: str, server_pubkey_hex: str, out_path: str,
             overwrite: bool = False) -> bytes:
    """
    Write a fresh client config and return the client's 33-byte public key.

    The file is read back through load_client_config; if it does not yield
    the same identity it is removed and ConfigError is raised.
    """
    if os.path.exists(out_path) and not overwrite:
        raise ConfigError(f"refusing to overwrite existing {out_path}")

    private_key = ec.generate_private_key(CURVE)
    try:
        text = render_config(serial_id, private_key, server_pubkey_hex)
    except ValidationError as e:
        raise ConfigError(f"invalid client identity: {e}") from e

    out_dir = os.path.dirname(out_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(text)

    pub = compressed_public_key(private_key)
    try:
        cfg = load_client_config(out_path)
        if cfg.client_serial_id != serial_id:
            raise ConfigError(f"serial id {serial_id!r} reads back as {cfg.client_serial_id!r}")
        if compressed_public_key(cfg.client_private_key()) != pub:
            raise ConfigError("private key does not read back intact")
    except ConfigError:
        os.remove(out_path)
        raise
    return pub


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="srp-keygen")
    parser.add_argument("--serial", required=True, help="client serial id")
    parser.add_argument("--server-pubkey", required=True,
                        help="verifier public key, 33-byte compressed hex")
    parser.add_argument("--out", default=DEFAULT_OUT)
    parser.add_argument("--force", action="store_true", help="overwrite existing file")
    args = parser.parse_args(argv)

    try:
        pub = generate(args.serial, args.server_pubkey, args.out, overwrite=args.force)
    except (ConfigError, ValueError) as e:
        print(f"[!] {e}", file=sys.stderr)
        return 1

    print(f"[+] Client config written to: {args.out}")
    print(f"[+] Register with verifier: client.{args.serial}.pubkey_hex={pub.hex()}")
    print("[!] DO NOT COMMIT THE CONFIG FILE TO GITHUB")
    return 0


if __name__ == "__main__":
    sys.exit(main())
