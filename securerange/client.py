import argparse
import logging
import os
import secrets
import socket
import sys
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from cryptography.hazmat.primitives.asymmetric import ec
from dotenv import load_dotenv

from securerange.common.channel import END_OF_STREAM, FrameChannel
from securerange.common.protocol import (
    AuthResult,
    ClientHello,
    ClientResponse,
    Envelope,
    MessageType,
    RangeProofRequest,
    RangeProofResult,
    ServerChallenge,
    WireMessage,
    type_name,
)
from securerange.config import ClientConfig, load_client_config
from securerange.crypto.range_proof import build_range_proof
from securerange.crypto.sign import ecdsa_sign, ecdsa_verify
from securerange.errors import (
    AuthenticationError,
    PeerDisconnectedError,
    ProtocolSequenceError,
    RangeProofConstructionError,
    RoundRejectedError,
    SecureRangeError,
)

logger = logging.getLogger(__name__)


class SessionState(Enum):
    INIT = "init"
    HELLO_SENT = "hello_sent"
    CHALLENGE_RECEIVED = "challenge_received"
    RESPONSE_SENT = "response_sent"
    AUTHENTICATED = "authenticated"
    REQUEST_SENT = "request_sent"
    RESULT_RECEIVED = "result_received"
    CLOSED = "closed"


@dataclass(frozen=True)
class RoundOutcome:
    request_id: int
    ok: bool
    message: str


# ------------------------ Session ------------------------

class ClientSession:
    """
    Client side of one connection: mutual authentication, then lockstep
    range-proof rounds. Any error is terminal and leaves the session CLOSED.
    """

    def __init__(
        self,
        channel: FrameChannel,
        serial_id: bytes,
        client_key: ec.EllipticCurvePrivateKey,
        server_key: ec.EllipticCurvePublicKey,
        abort_on_failure: bool = False,
        recv_timeout: Optional[float] = None,
    ):
        self.channel = channel
        self.serial_id = serial_id
        self.client_key = client_key
        self.server_key = server_key
        self.abort_on_failure = abort_on_failure
        self.recv_timeout = recv_timeout
        self.state = SessionState.INIT
        self.nonce: Optional[bytes] = None

    @classmethod
    def connect(cls, host: str, port: int, config: ClientConfig, **kwargs) -> "ClientSession":
        sock = socket.create_connection((host, port))
        logger.info("[NET] Connected to %s:%d", host, port)
        return cls(
            FrameChannel(sock),
            serial_id=config.serial_id,
            client_key=config.client_private_key(),
            server_key=config.server_public_key(),
            **kwargs,
        )

    def __enter__(self) -> "ClientSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------ Transport helpers ------------------------

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            raise ProtocolSequenceError(f"operation not allowed in state {self.state.name}")

    def _send(self, msg_type: MessageType, message: WireMessage,
              request_id: Optional[int] = None) -> None:
        env = Envelope.wrap(msg_type, message, request_id=request_id)
        self.channel.send_frame(env.encode())

    def _recv(self, expected: MessageType) -> Envelope:
        frame = self.channel.recv_frame(timeout=self.recv_timeout)
        if frame is END_OF_STREAM:
            raise PeerDisconnectedError(f"connection closed while waiting for {expected.name}")
        env = Envelope.decode(frame)
        if env.type != expected:
            raise ProtocolSequenceError(
                f"expected {expected.name}, got {type_name(env.type)}"
            )
        return env

    def _fail_closed(self) -> None:
        self.state = SessionState.CLOSED

    # ------------------------ Handshake ------------------------

    def authenticate(self) -> str:
        """
        Run the ClientHello / ServerChallenge / ClientResponse / AuthResult
        exchange.

        :return: the server's AuthResult message text
        :raises AuthenticationError: bad server signature or auth rejected
        """
        self._require(SessionState.INIT)
        try:
            self._send(MessageType.CLIENT_HELLO, ClientHello(
                serial_id=self.serial_id,
                sig=ecdsa_sign(self.client_key, self.serial_id),
            ))
            self.state = SessionState.HELLO_SENT

            challenge = self._recv(MessageType.SERVER_CHALLENGE).open(ServerChallenge)
            if not ecdsa_verify(self.server_key, self.serial_id + challenge.nonce,
                                challenge.server_sig):
                raise AuthenticationError("server signature verification failed")
            self.nonce = challenge.nonce
            self.state = SessionState.CHALLENGE_RECEIVED
            logger.info("[AUTH] Server challenge verified.")

            self._send(MessageType.CLIENT_RESPONSE, ClientResponse(
                sig=ecdsa_sign(self.client_key, challenge.nonce),
            ))
            self.state = SessionState.RESPONSE_SENT

            result = self._recv(MessageType.AUTH_RESULT).open(AuthResult)
            if not result.ok:
                raise AuthenticationError(f"auth failed: {result.message or ''}")
        except Exception:
            self._fail_closed()
            raise

        self.state = SessionState.AUTHENTICATED
        logger.info("[AUTH] ok: %s", result.message or "")
        return result.message or ""

    # ------------------------ Range proofs ------------------------

    def request_proof(self, min_value: int, max_value: int, bitlen: int,
                      request_id: int) -> RoundOutcome:
        """
        One proof round: sample a secret x in [min, max], prove it, and
        collect the verifier's verdict.
        """
        self._require(SessionState.AUTHENTICATED, SessionState.RESULT_RECEIVED)
        try:
            if max_value < min_value:
                raise RangeProofConstructionError(f"min > max ({min_value} > {max_value})")
            x = min_value + secrets.randbelow(max_value - min_value + 1)
            proof = build_range_proof(min_value, max_value, bitlen, x)

            self._send(MessageType.RANGE_PROOF_REQUEST, RangeProofRequest(
                min=proof.min,
                max=proof.max,
                bitlen=proof.bitlen,
                c1=proof.c1,
                c2=proof.c2,
                lower_commit=list(proof.lower_commit),
                upper_commit=list(proof.upper_commit),
            ), request_id=request_id)
            self.state = SessionState.REQUEST_SENT

            env = self._recv(MessageType.RANGE_PROOF_RESULT)
            if env.request_id is not None and env.request_id != request_id:
                raise ProtocolSequenceError(
                    f"mismatched request_id: expected {request_id}, got {env.request_id}"
                )
            result = env.open(RangeProofResult)
        except Exception:
            self._fail_closed()
            raise

        self.state = SessionState.RESULT_RECEIVED
        outcome = RoundOutcome(request_id=request_id, ok=result.ok,
                               message=result.message or "")
        report = logger.info if outcome.ok else logger.warning
        report("[PROOF] %s: %s (min=%d, max=%d, bitlen=%d)",
               "OK" if outcome.ok else "FAIL", outcome.message,
               min_value, max_value, bitlen)
        return outcome

    def run(self, min_value: int, max_value: int, bitlen: int,
            rounds: int = 1) -> List[RoundOutcome]:
        """
        Authenticate, run `rounds` proof rounds, then half-close the connection.

        A rejected round is reported and the remaining rounds still run,
        unless abort_on_failure is set, in which case RoundRejectedError is
        raised right after it.
        """
        if self.state is SessionState.INIT:
            self.authenticate()

        outcomes = []
        for request_id in range(1, rounds + 1):
            outcome = self.request_proof(min_value, max_value, bitlen, request_id)
            outcomes.append(outcome)
            if not outcome.ok and self.abort_on_failure:
                self._fail_closed()
                raise RoundRejectedError(request_id, outcome.message)

        self.channel.close_write()
        self.state = SessionState.CLOSED
        return outcomes

    def close(self) -> None:
        self.state = SessionState.CLOSED
        self.channel.close()


# ------------------------ CLI ------------------------

DEFAULT_CONFIG = os.path.join("config", "client.conf")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="srp-client",
        description="Prove to a remote verifier that secret values lie in [min, max].",
    )
    parser.add_argument("--host", default=os.getenv("SRP_SERVER_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("SRP_SERVER_PORT", "9000")))
    parser.add_argument("--config", default=os.getenv("SRP_CLIENT_CONFIG", DEFAULT_CONFIG))
    parser.add_argument("--bitlen", type=int, default=32)
    parser.add_argument("--min", dest="min_value", type=int, default=0)
    parser.add_argument("--max", dest="max_value", type=int, default=None,
                        help="upper bound (default: 2^bitlen - 1)")
    parser.add_argument("--requests", type=int, default=1)
    parser.add_argument("--abort-on-failure", action="store_true",
                        help="stop after the first rejected proof")
    parser.add_argument("--timeout", type=float, default=None,
                        help="seconds to wait for each server message (default: forever)")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    max_value = args.max_value
    if max_value is None:
        if args.bitlen < 1:
            parser.error("--bitlen must be positive when --max is omitted")
        max_value = (1 << args.bitlen) - 1

    try:
        config = load_client_config(args.config)
        logger.info("[CONFIG] Connecting to %s:%d...", args.host, args.port)
        with ClientSession.connect(
            args.host, args.port, config,
            abort_on_failure=args.abort_on_failure,
            recv_timeout=args.timeout,
        ) as session:
            session.run(args.min_value, max_value, args.bitlen, args.requests)
    except (SecureRangeError, OSError) as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1

    logger.info("Session closed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
