############################################################################################
# Scope Stream Demultiplexer
############################################################################################
#
# The drive's serial link carries console text and binary oscilloscope frames in one byte
# stream. This module separates them.
#
# - ScopeProtocol:
#       Wire constants of the scope frames and the matching frame encoder.
# - PacketAssembler:
#       Decodes the payload of one complete frame into a SamplePacket or a ResetEvent.
# - TextDecoder:
#       Converts console bytes to str using a narrow 8 bit encoding.
# - ScopeDataDemux:
#       Consumes raw serial chunks, scans for frames, reassembles frames split over
#       several reads and resynchronizes after framing errors.
#
# Frame layout
# ------------
#
#   | MARKER | KIND | LEN | PAYLOAD[LEN] |
#
#   MARKER  one byte, 0xFF by default
#   KIND    one byte, sample (0x01) or reset (0x02)
#   LEN     one byte, payload length 0..255
#   PAYLOAD channel_count samples, little endian float32 by default, empty for reset
#
# A frame whose KIND or LEN does not match the protocol is a framing error. The marker
# byte is then handed out as text and scanning restarts at the byte following the
# marker. The scanner never looks more than 2 bytes past a marker to make that call.
#
# Bytes of an incomplete frame are carried over to the next call. LEN is at most 255,
# therefore the carry-over never exceeds 258 bytes.
#
# ------------------------------------------------
#
# This code is maintained by the Servoterm developers
############################################################################################

import codecs
import struct
import logging                                   # logger
from enum import Enum
from dataclasses import dataclass
from typing import List, NamedTuple, Sequence, Union
import numpy as np                               # NumPy for numerical computing

from config import (SCOPE_MARKER, SCOPE_KIND_SAMPLE, SCOPE_KIND_RESET,
                    SCOPE_HEADER_SIZE, SCOPE_MAX_PAYLOAD,
                    SCOPE_CHANNEL_COUNT, SCOPE_SAMPLE_FORMAT, SCOPE_BYTE_ORDER,
                    ENCODING, DEBUGDEMUX)

SAMPLE_FORMATS = {
    "e": 2,                                      # float16
    "f": 4,                                      # float32
    "d": 8,                                      # float64
}

####################################################################################
# Errors, States and Events
####################################################################################

class DecodeError(ValueError):
    """A frame payload does not match what its kind requires."""


class ParserState(Enum):
    SCANNING_TEXT        = 0
    READING_FRAME_HEADER = 1
    READING_FRAME_BODY   = 2


class SamplePacket:
    """
    One oscilloscope tick: exactly channel_count values in channel order.

    The values are kept in the wire dtype, equality is bit exact.
    """

    __slots__ = ("values",)

    def __init__(self, values: np.ndarray):
        values = np.asarray(values)
        if values.ndim != 1:
            raise ValueError("SamplePacket values must be one dimensional")
        if values.flags.writeable:
            values = values.copy()
            values.flags.writeable = False
        self.values = values

    def __len__(self):
        return self.values.shape[0]

    def __iter__(self):
        return iter(self.values)

    def __getitem__(self, index):
        return self.values[index]

    def __eq__(self, other):
        if not isinstance(other, SamplePacket):
            return NotImplemented
        return (self.values.dtype == other.values.dtype
                and self.values.tobytes() == other.values.tobytes())

    def __hash__(self):
        return hash((self.values.dtype.str, self.values.tobytes()))

    def __repr__(self):
        return f"SamplePacket({self.values.tolist()})"

    def tolist(self) -> List[float]:
        return self.values.tolist()


@dataclass(frozen=True)
class ResetEvent:
    """The device restarted its scope, the chart's rolling index goes back to zero."""


FrameEvent = Union[SamplePacket, ResetEvent]


class DemuxResult(NamedTuple):
    text: str                                    # decoded console text of this chunk
    events: List[FrameEvent]                     # completed frames in order of completion

####################################################################################
# Protocol
####################################################################################

@dataclass(frozen=True)
class ScopeProtocol:
    """
    Constants of the scope frame protocol.

    All values are plain bytes (0..255). The payload of a sample frame is
    channel_count values of sample_format in byte_order, it has to fit the one byte
    length field.
    """

    marker: int        = SCOPE_MARKER
    kind_sample: int   = SCOPE_KIND_SAMPLE
    kind_reset: int    = SCOPE_KIND_RESET
    channel_count: int = SCOPE_CHANNEL_COUNT
    sample_format: str = SCOPE_SAMPLE_FORMAT
    byte_order: str    = SCOPE_BYTE_ORDER

    def __post_init__(self):
        for name in ("marker", "kind_sample", "kind_reset"):
            value = getattr(self, name)
            if not (0 <= value <= 255):
                raise ValueError(f"{name} must be between 0 and 255, got {value}")
        if self.kind_sample == self.kind_reset:
            raise ValueError("kind_sample and kind_reset must differ")
        if self.sample_format not in SAMPLE_FORMATS:
            raise ValueError(f"sample_format must be one of {sorted(SAMPLE_FORMATS)}, got {self.sample_format!r}")
        if self.byte_order not in ("<", ">"):
            raise ValueError(f"byte_order must be '<' or '>', got {self.byte_order!r}")
        if self.channel_count < 1:
            raise ValueError("channel_count must be at least 1")
        if self.sample_payload_size > SCOPE_MAX_PAYLOAD:
            raise ValueError(
                f"{self.channel_count} channels of {self.sample_width} bytes do not fit "
                f"a payload of {SCOPE_MAX_PAYLOAD} bytes"
            )

    @property
    def sample_width(self) -> int:
        return SAMPLE_FORMATS[self.sample_format]

    @property
    def sample_dtype(self) -> np.dtype:
        return np.dtype(self.byte_order + self.sample_format)

    @property
    def sample_payload_size(self) -> int:
        return self.channel_count * self.sample_width

    @property
    def header_size(self) -> int:
        """Bytes from the marker up to the first payload byte."""
        return 1 + SCOPE_HEADER_SIZE

    @property
    def max_frame_size(self) -> int:
        return self.header_size + SCOPE_MAX_PAYLOAD

    def expected_length(self, kind: int):
        """Payload length a frame of this kind declares, None for unknown kinds."""
        if kind == self.kind_sample:
            return self.sample_payload_size
        if kind == self.kind_reset:
            return 0
        return None

    def encode_samples(self, values: Sequence[float]) -> bytes:
        """Build a complete sample frame from channel_count values."""
        if len(values) != self.channel_count:
            raise ValueError(f"Expected {self.channel_count} values, got {len(values)}")
        payload = struct.pack(f"{self.byte_order}{self.channel_count}{self.sample_format}", *values)
        return bytes((self.marker, self.kind_sample, len(payload))) + payload

    def encode_reset(self) -> bytes:
        """Build a complete reset frame."""
        return bytes((self.marker, self.kind_reset, 0))

####################################################################################
# Packet Assembler
####################################################################################

class PacketAssembler:
    """
    Turns the payload of a complete frame into a frame event.

    Values are passed through as they were sent: no scaling, no clamping,
    NaN and infinities included.
    """

    def __init__(self, protocol: ScopeProtocol = None):
        self.protocol = protocol if protocol is not None else ScopeProtocol()
        self._dtype = self.protocol.sample_dtype

    def decode_frame(self, kind: int, payload: bytes) -> FrameEvent:
        protocol = self.protocol
        if kind == protocol.kind_sample:
            if len(payload) != protocol.sample_payload_size:
                raise DecodeError(
                    f"Sample payload has {len(payload)} bytes, "
                    f"expected {protocol.sample_payload_size}"
                )
            return SamplePacket(np.frombuffer(bytes(payload), dtype=self._dtype))
        if kind == protocol.kind_reset:
            if len(payload):
                raise DecodeError(f"Reset payload has {len(payload)} bytes, expected 0")
            return ResetEvent()
        raise DecodeError(f"Unknown frame kind 0x{kind:02X}")

####################################################################################
# Text Decoder
####################################################################################

class TextDecoder:
    """
    Decodes console bytes with a one byte per character encoding.

    Since every byte maps to exactly one character a line break split across two
    reads decodes the same as if both reads arrived at once. Multi byte codecs are
    refused. Bytes a codec does not define (e.g. 0x81 in cp1252) become U+FFFD.
    """

    def __init__(self, encoding: str = ENCODING):
        try:
            info = codecs.lookup(encoding)
        except LookupError:
            raise ValueError(f"Unknown encoding {encoding!r}") from None
        for probe in ("A", "é", "€", "あ"):
            if len(probe.encode(info.name, errors="replace")) != 1:
                raise ValueError(f"Encoding {encoding!r} is not a single byte encoding")
        self.encoding = info.name

    def decode(self, data: bytes) -> str:
        if not data:
            return ""
        return bytes(data).decode(self.encoding, errors="replace")

####################################################################################
# Demultiplexer
####################################################################################

class ScopeDataDemux:
    """
    Splits the serial byte stream into console text and scope frame events.

    feed(chunk) is called once per serial read with whatever the port delivered. The
    result holds the text of all bytes that are not part of a frame and the events of
    all frames completed by this chunk. Splitting a stream into chunks differently
    never changes the concatenated text or the sequence of events.

    reset() has to be called whenever the connection is opened or closed.
    """

    def __init__(self, protocol: ScopeProtocol = None, encoding: str = ENCODING, logger=None):

        self.protocol  = protocol if protocol is not None else ScopeProtocol()
        self.assembler = PacketAssembler(self.protocol)
        self.decoder   = TextDecoder(encoding)

        self.logger = logger if logger is not None else logging.getLogger(__name__)

        self._carry     = bytearray()                                          # incomplete frame, starts with the marker
        self._state     = ParserState.SCANNING_TEXT
        self._remaining = 0                                                    # payload bytes still missing in READING_FRAME_BODY

        self._bytes_received   = 0
        self._packets_received = 0
        self._resets_received  = 0
        self._framing_errors   = 0

    # Properties
    # ----------------------------------------

    @property
    def state(self) -> ParserState:
        return self._state

    @property
    def bytes_remaining(self) -> int:
        return self._remaining

    @property
    def pending(self) -> int:
        """Number of bytes held in the carry-over buffer."""
        return len(self._carry)

    @property
    def bytes_received(self) -> int:
        return self._bytes_received

    @property
    def packets_received(self) -> int:
        return self._packets_received

    @property
    def resets_received(self) -> int:
        return self._resets_received

    @property
    def framing_errors(self) -> int:
        return self._framing_errors

    # Connection lifecycle
    # ----------------------------------------

    def reset(self) -> None:
        """
        Forget everything about the previous connection.

        A partially received frame is dropped, no partial packet is ever reported.
        """
        if self._carry:
            self.logger.log(logging.DEBUG, f"Discarding {len(self._carry)} bytes of an incomplete frame")
        self._carry.clear()
        self._state = ParserState.SCANNING_TEXT
        self._remaining = 0
        self._bytes_received   = 0
        self._packets_received = 0
        self._resets_received  = 0
        self._framing_errors   = 0

    # Processing
    # ----------------------------------------

    def feed(self, new_data: bytes) -> DemuxResult:
        """
        Process one chunk of serial data.

        Returns the decoded text and the completed frame events. Incomplete frames
        are kept until the next call.
        """

        if not new_data:
            return DemuxResult("", [])

        self._bytes_received += len(new_data)

        # Frames are always rescanned from their marker, the header decision is
        # then made on the same bytes no matter how the stream was chunked
        if self._carry:
            self._carry.extend(new_data)
            buf = bytes(self._carry)
            self._carry.clear()
        else:
            buf = bytes(new_data)

        protocol    = self.protocol
        marker      = protocol.marker
        header_size = protocol.header_size
        size        = len(buf)

        self._state = ParserState.SCANNING_TEXT
        self._remaining = 0

        text_runs = []
        events = []
        pos = 0

        while pos < size:

            start = buf.find(marker, pos)
            if start < 0:
                text_runs.append(buf[pos:])
                break
            if start > pos:
                text_runs.append(buf[pos:start])

            # Header
            if size - start < header_size:
                self._hold(buf[start:], ParserState.READING_FRAME_HEADER, 0)
                break

            kind   = buf[start + 1]
            length = buf[start + 2]
            if protocol.expected_length(kind) != length:
                self._framing_error(f"invalid header kind=0x{kind:02X} length={length}")
                text_runs.append(buf[start:start + 1])
                pos = start + 1
                continue

            # Body
            end = start + header_size + length
            if size < end:
                self._hold(buf[start:], ParserState.READING_FRAME_BODY, end - size)
                break

            try:
                event = self.assembler.decode_frame(kind, buf[start + header_size:end])
            except DecodeError as e:
                self._framing_error(str(e))
                text_runs.append(buf[start:start + 1])
                pos = start + 1
                continue

            if isinstance(event, ResetEvent):
                self._resets_received += 1
            else:
                self._packets_received += 1
            events.append(event)
            pos = end

        text = self.decoder.decode(b"".join(text_runs))

        if DEBUGDEMUX:
            self.logger.log(
                logging.DEBUG,
                f"Rx {len(new_data)} bytes: {len(text)} characters, {len(events)} frames, "
                f"{len(self._carry)} bytes carried, state {self._state.name}"
            )

        return DemuxResult(text, events)

    def _hold(self, partial: bytes, state: ParserState, remaining: int) -> None:
        self._carry.extend(partial)
        self._state = state
        self._remaining = remaining

    def _framing_error(self, reason: str) -> None:
        self._framing_errors += 1
        level = logging.WARNING if self._framing_errors == 1 else logging.DEBUG
        self.logger.log(level, f"Framing error #{self._framing_errors}: {reason}, resynchronizing")
