"""
Pydantic message models for the range-proof protocol.
These are the ONLY structures exchanged between client and verifier.

Every model carries its protobuf field table and encodes/decodes itself in
protobuf wire format (proto3 rules: zero-valued non-optional scalars are
omitted, unknown fields are skipped). An Envelope wraps one encoded message
as an opaque payload and travels as a single frame.
"""

import copy
from enum import IntEnum
from typing import Annotated, Any, ClassVar, Dict, List, NamedTuple, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from securerange.errors import WireFormatError

U32_MAX = 0xFFFFFFFF
SIG_LEN = 64
POINT_LEN = 33
COMMITS_PER_SIDE = 4

Signature64 = Annotated[bytes, Field(min_length=SIG_LEN, max_length=SIG_LEN)]
Point33 = Annotated[bytes, Field(min_length=POINT_LEN, max_length=POINT_LEN)]
U32 = Annotated[int, Field(ge=0, le=U32_MAX)]
Commitments = Annotated[
    List[Point33], Field(min_length=COMMITS_PER_SIDE, max_length=COMMITS_PER_SIDE)
]


class MessageType(IntEnum):
    UNSPECIFIED = 0
    CLIENT_HELLO = 1
    SERVER_CHALLENGE = 2
    CLIENT_RESPONSE = 3
    AUTH_RESULT = 4
    RANGE_PROOF_REQUEST = 5
    RANGE_PROOF_RESULT = 6


def type_name(value: int) -> str:
    try:
        return MessageType(value).name
    except ValueError:
        return f"UNKNOWN({value})"


# -------------------------
# Protobuf wire primitives
# -------------------------

WT_VARINT = 0
WT_FIXED64 = 1
WT_LEN = 2
WT_FIXED32 = 5

VARINT = "varint"
BOOL = "bool"
BYTES = "bytes"
STRING = "string"
REPEATED_BYTES = "repeated_bytes"

_ZERO = {VARINT: 0, BOOL: False, BYTES: b"", STRING: "", REPEATED_BYTES: []}


class WireField(NamedTuple):
    number: int
    kind: str
    optional: bool = False


def encode_varint(value: int) -> bytes:
    if value < 0:
        raise ValueError("varint must be non-negative")
    out = bytearray()
    while True:
        b = value & 0x7F
        value >>= 7
        if value:
            out.append(b | 0x80)
        else:
            out.append(b)
            return bytes(out)


def decode_varint(data: bytes, pos: int):
    """Return (value, new_pos)."""
    result = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise WireFormatError("truncated varint")
        if shift >= 64:
            raise WireFormatError("varint too long")
        b = data[pos]
        pos += 1
        result |= (b & 0x7F) << shift
        if not b & 0x80:
            return result, pos
        shift += 7


def _tag(number: int, wire_type: int) -> bytes:
    return encode_varint((number << 3) | wire_type)


def _len_delimited(number: int, data: bytes) -> bytes:
    return _tag(number, WT_LEN) + encode_varint(len(data)) + data


def _iter_fields(data: bytes):
    """Yield (field_number, wire_type, value) for every field in data."""
    pos = 0
    while pos < len(data):
        key, pos = decode_varint(data, pos)
        number, wire_type = key >> 3, key & 0x07
        if number == 0:
            raise WireFormatError("field number 0")
        if wire_type == WT_VARINT:
            value, pos = decode_varint(data, pos)
        elif wire_type == WT_LEN:
            length, pos = decode_varint(data, pos)
            if pos + length > len(data):
                raise WireFormatError("truncated length-delimited field")
            value = data[pos:pos + length]
            pos += length
        elif wire_type in (WT_FIXED64, WT_FIXED32):
            size = 8 if wire_type == WT_FIXED64 else 4
            if pos + size > len(data):
                raise WireFormatError("truncated fixed-width field")
            value = data[pos:pos + size]
            pos += size
        else:
            raise WireFormatError(f"unsupported wire type {wire_type}")
        yield number, wire_type, value


M = TypeVar("M", bound="WireMessage")


class WireMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    WIRE: ClassVar[Dict[str, WireField]] = {}

    def encode(self) -> bytes:
        out = bytearray()
        for name, field in sorted(self.WIRE.items(), key=lambda kv: kv[1].number):
            value = getattr(self, name)
            if value is None:
                continue
            if not field.optional and value == _ZERO[field.kind]:
                continue
            if field.kind in (VARINT, BOOL):
                out += _tag(field.number, WT_VARINT) + encode_varint(int(value))
            elif field.kind == BYTES:
                out += _len_delimited(field.number, bytes(value))
            elif field.kind == STRING:
                out += _len_delimited(field.number, value.encode("utf-8"))
            elif field.kind == REPEATED_BYTES:
                for item in value:
                    out += _len_delimited(field.number, bytes(item))
        return bytes(out)

    @classmethod
    def decode(cls: Type[M], data: bytes) -> M:
        by_number = {field.number: (name, field) for name, field in cls.WIRE.items()}
        values: Dict[str, Any] = {}

        for number, wire_type, raw in _iter_fields(data):
            entry = by_number.get(number)
            if entry is None:
                continue
            name, field = entry
            expected = WT_VARINT if field.kind in (VARINT, BOOL) else WT_LEN
            if wire_type != expected:
                raise WireFormatError(f"{cls.__name__}.{name}: wrong wire type {wire_type}")
            if field.kind == VARINT:
                values[name] = raw
            elif field.kind == BOOL:
                values[name] = raw != 0
            elif field.kind == BYTES:
                values[name] = bytes(raw)
            elif field.kind == STRING:
                try:
                    values[name] = bytes(raw).decode("utf-8")
                except UnicodeDecodeError as e:
                    raise WireFormatError(f"{cls.__name__}.{name}: invalid utf-8") from e
            elif field.kind == REPEATED_BYTES:
                values.setdefault(name, []).append(bytes(raw))

        for name, field in cls.WIRE.items():
            if name not in values:
                values[name] = None if field.optional else copy.copy(_ZERO[field.kind])

        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise WireFormatError(f"invalid {cls.__name__}: {e}") from e


# -------------------------
# Envelope
# -------------------------

class Envelope(WireMessage):
    WIRE: ClassVar[Dict[str, WireField]] = {
        "type": WireField(1, VARINT),
        "payload": WireField(2, BYTES),
        "request_id": WireField(3, VARINT, optional=True),
    }

    type: int          # MessageType value; unknown values are kept for error reporting
    payload: bytes
    request_id: Optional[U32] = None

    @classmethod
    def wrap(cls, msg_type: MessageType, message: WireMessage,
             request_id: Optional[int] = None) -> "Envelope":
        return cls(type=int(msg_type), payload=message.encode(), request_id=request_id)

    def open(self, message_cls: Type[M]) -> M:
        """Decode the payload as `message_cls`."""
        return message_cls.decode(self.payload)


# -------------------------
# Handshake
# -------------------------

class ClientHello(WireMessage):
    WIRE: ClassVar[Dict[str, WireField]] = {
        "serial_id": WireField(1, BYTES),
        "sig": WireField(2, BYTES),
    }

    serial_id: bytes
    sig: Signature64     # sign(client_priv, serial_id)


class ServerChallenge(WireMessage):
    WIRE: ClassVar[Dict[str, WireField]] = {
        "nonce": WireField(1, BYTES),
        "server_sig": WireField(2, BYTES),
    }

    nonce: bytes
    server_sig: Signature64  # sign(server_priv, serial_id || nonce)


class ClientResponse(WireMessage):
    WIRE: ClassVar[Dict[str, WireField]] = {
        "sig": WireField(1, BYTES),
    }

    sig: Signature64     # sign(client_priv, nonce)


class AuthResult(WireMessage):
    WIRE: ClassVar[Dict[str, WireField]] = {
        "ok": WireField(1, BOOL),
        "message": WireField(2, STRING, optional=True),
    }

    ok: bool
    message: Optional[str] = None


# -------------------------
# Range proof
# -------------------------

class RangeProofRequest(WireMessage):
    WIRE: ClassVar[Dict[str, WireField]] = {
        "min": WireField(1, VARINT),
        "max": WireField(2, VARINT),
        "bitlen": WireField(3, VARINT),
        "c1": WireField(4, BYTES),
        "c2": WireField(5, BYTES),
        "lower_commit": WireField(6, REPEATED_BYTES),
        "upper_commit": WireField(7, REPEATED_BYTES),
    }

    min: U32
    max: U32
    bitlen: U32
    c1: Point33
    c2: Point33
    lower_commit: Commitments
    upper_commit: Commitments


class RangeProofResult(WireMessage):
    WIRE: ClassVar[Dict[str, WireField]] = {
        "ok": WireField(1, BOOL),
        "message": WireField(2, STRING, optional=True),
    }

    ok: bool
    message: Optional[str] = None
