"""4-byte big-endian length-prefixed framing."""

import struct
from typing import List

from securerange.errors import FramingError

HEADER_LEN = 4
MAX_FRAME_LEN = 1024 * 1024

_HEADER = struct.Struct(">I")


def encode_frame(payload: bytes) -> bytes:
    """Prefix payload with its length. Refuses frames the peer must reject."""
    if not payload or len(payload) > MAX_FRAME_LEN:
        raise FramingError(f"invalid frame length: {len(payload)}")
    return _HEADER.pack(len(payload)) + payload


class FrameDecoder:
    """
    Stateful accumulator turning an arbitrary chunked byte stream into frames.

    A bad declared length poisons the decoder: the stream cannot be resynced,
    so every later feed() raises the same FramingError.
    """

    def __init__(self):
        self._buf = bytearray()
        self._error = None

    @property
    def pending(self) -> int:
        """Bytes buffered but not yet returned as a frame."""
        return len(self._buf)

    def feed(self, chunk: bytes) -> List[bytes]:
        if self._error is not None:
            raise self._error
        self._buf += chunk

        frames = []
        while len(self._buf) >= HEADER_LEN:
            (length,) = _HEADER.unpack_from(self._buf, 0)
            if length == 0 or length > MAX_FRAME_LEN:
                self._error = FramingError(f"invalid frame length: {length}")
                raise self._error
            end = HEADER_LEN + length
            if len(self._buf) < end:
                break
            frames.append(bytes(self._buf[HEADER_LEN:end]))
            del self._buf[:end]
        return frames
