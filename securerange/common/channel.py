"""
Frame channel over a connected stream socket.

A reader thread feeds received bytes through a FrameDecoder and pushes
completed frames onto a bounded FIFO queue. Callers block in recv_frame()
until the next frame is available. When the peer closes, every pending and
future recv_frame() returns END_OF_STREAM.
"""

import logging
import queue
import socket
import threading
from typing import Optional, Union

from securerange.common.framing import FrameDecoder, encode_frame
from securerange.errors import FramingError, PeerTimeoutError

logger = logging.getLogger(__name__)

RECV_CHUNK = 4096
QUEUE_DEPTH = 64


class _EndOfStream:
    def __repr__(self) -> str:
        return "END_OF_STREAM"


END_OF_STREAM = _EndOfStream()


class FrameChannel:
    def __init__(self, sock: socket.socket, start_reader: bool = True):
        self.sock = sock
        self._decoder = FrameDecoder()
        self._frames: "queue.Queue[object]" = queue.Queue(maxsize=QUEUE_DEPTH)
        self._closed = threading.Event()
        self._reader: Optional[threading.Thread] = None
        if start_reader:
            self._reader = threading.Thread(
                target=self._read_loop, name="frame-reader", daemon=True
            )
            self._reader.start()

    # ------------------------ Inbound ------------------------

    def feed(self, chunk: bytes) -> None:
        """Push received bytes; completed frames are queued in arrival order."""
        try:
            frames = self._decoder.feed(chunk)
        except FramingError as e:
            logger.error("[NET] %s, dropping connection", e)
            self._frames.put(e)
            raise
        for frame in frames:
            self._frames.put(frame)

    def feed_eof(self) -> None:
        self._frames.put(END_OF_STREAM)

    def _read_loop(self) -> None:
        try:
            while True:
                try:
                    chunk = self.sock.recv(RECV_CHUNK)
                except OSError as e:
                    if not self._closed.is_set():
                        logger.warning("[NET] read error: %s", e)
                    break
                if not chunk:
                    break
                self.feed(chunk)
        except FramingError:
            self._shutdown_socket()
            return
        self.feed_eof()

    def recv_frame(self, timeout: Optional[float] = None) -> Union[bytes, _EndOfStream]:
        """
        Block until the next frame arrives.

        :return: frame payload, or END_OF_STREAM once the peer has closed
        :raises FramingError: the stream was corrupted
        :raises PeerTimeoutError: nothing arrived within `timeout` seconds
        """
        try:
            item = self._frames.get(timeout=timeout)
        except queue.Empty:
            raise PeerTimeoutError(f"no frame received within {timeout}s") from None

        if item is END_OF_STREAM or isinstance(item, FramingError):
            # terminal: keep it at the head for any later receive
            self._frames.put(item)
        if isinstance(item, FramingError):
            raise item
        return item

    # ------------------------ Outbound ------------------------

    def send_frame(self, payload: bytes) -> None:
        self.sock.sendall(encode_frame(payload))

    def close_write(self) -> None:
        """Half-close: signal the peer we are done sending."""
        try:
            self.sock.shutdown(socket.SHUT_WR)
        except OSError as e:
            logger.debug("[NET] shutdown(SHUT_WR) failed: %s", e)

    def _shutdown_socket(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug("[NET] shutdown(SHUT_RDWR) failed: %s", e)

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._shutdown_socket()
        self.sock.close()
        if self._reader is not None and self._reader is not threading.current_thread():
            self._reader.join(timeout=1.0)
