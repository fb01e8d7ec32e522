"""
Range-proof client test fixtures.
"""

import socket

import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from securerange.client import ClientSession
from securerange.common.channel import FrameChannel
from securerange.crypto.ec import CURVE, compressed_public_key, private_key_from_bytes

from sim_verifier import DEMO_SERIAL as SERIAL, SimulatedVerifier


@pytest.fixture
def server_key() -> ec.EllipticCurvePrivateKey:
    """Deterministic server key (scalar 1, public point G)."""
    return private_key_from_bytes((1).to_bytes(32, "big"))


@pytest.fixture
def client_key() -> ec.EllipticCurvePrivateKey:
    """Deterministic client key (scalar 2, public point 2G)."""
    return private_key_from_bytes((2).to_bytes(32, "big"))


@pytest.fixture
def other_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(CURVE)


@pytest.fixture
def write_config(tmp_path, client_key, server_key):
    """Write a client config file; keyword overrides replace or drop (None) keys."""
    def writer(**overrides):
        values = {
            "client_serial_id": SERIAL,
            "client_privkey_hex": "%064x" % client_key.private_numbers().private_value,
            "server_pubkey_hex": compressed_public_key(server_key).hex(),
        }
        values.update(overrides)
        lines = ["# client config"]
        lines += [f"{k}={v}" for k, v in values.items() if v is not None]
        path = tmp_path / "client.conf"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return str(path)
    return writer


@pytest.fixture
def session_pair(client_key, server_key):
    """
    Factory returning (ClientSession, SimulatedVerifier) joined by a socketpair.
    Verifier knobs are passed through.
    """
    created = []

    def factory(abort_on_failure=False, **verifier_opts):
        client_sock, server_sock = socket.socketpair()
        verifier = SimulatedVerifier(
            server_sock,
            server_key=server_key,
            clients={SERIAL: compressed_public_key(client_key)},
            **verifier_opts,
        )
        verifier.start()
        session = ClientSession(
            FrameChannel(client_sock),
            serial_id=SERIAL.encode("utf-8"),
            client_key=client_key,
            server_key=server_key.public_key(),
            abort_on_failure=abort_on_failure,
            recv_timeout=10.0,
        )
        created.append((session, verifier))
        return session, verifier

    yield factory

    for session, verifier in created:
        session.close()
        verifier.join(timeout=5.0)
