import struct

import numpy as np
import pytest

from helpers.Scope_helper import (
    PacketAssembler, ScopeProtocol, SamplePacket, ResetEvent, DecodeError,
)
from conftest import sample_values


def test_sample_frame(protocol):
    assembler = PacketAssembler(protocol)
    values = sample_values(protocol)
    payload = struct.pack(f"{protocol.byte_order}{protocol.channel_count}{protocol.sample_format}", *values)
    event = assembler.decode_frame(protocol.kind_sample, payload)
    assert isinstance(event, SamplePacket)
    assert len(event) == protocol.channel_count
    assert event.tolist() == values
    assert event.values.dtype == protocol.sample_dtype


def test_reset_frame(protocol):
    assert PacketAssembler(protocol).decode_frame(protocol.kind_reset, b"") == ResetEvent()


@pytest.mark.parametrize("delta", [-1, 1])
def test_sample_payload_size_mismatch(protocol, delta):
    payload = bytes(protocol.sample_payload_size + delta)
    with pytest.raises(DecodeError):
        PacketAssembler(protocol).decode_frame(protocol.kind_sample, payload)


def test_reset_with_payload(protocol):
    with pytest.raises(DecodeError):
        PacketAssembler(protocol).decode_frame(protocol.kind_reset, b"\x00")


def test_unknown_kind():
    with pytest.raises(DecodeError):
        PacketAssembler().decode_frame(0x7E, b"")


def test_decode_error_is_a_value_error():
    assert issubclass(DecodeError, ValueError)


def test_values_are_not_scaled():
    protocol = ScopeProtocol(channel_count=3)
    payload = struct.pack("<3f", 1e30, -1e30, float("inf"))
    event = PacketAssembler(protocol).decode_frame(protocol.kind_sample, payload)
    assert event[0] == np.float32(1e30)
    assert event[1] == np.float32(-1e30)
    assert np.isposinf(event[2])

####################################################################################
# SamplePacket
####################################################################################

def test_sample_packet_is_read_only():
    values = np.array([1.0, 2.0], dtype="<f4")
    packet = SamplePacket(values)
    values[0] = 5.0
    assert packet[0] == 1.0
    with pytest.raises(ValueError):
        packet.values[0] = 3.0


def test_sample_packet_equality_is_bit_exact():
    nan = np.array([np.nan], dtype="<f4")
    assert SamplePacket(nan) == SamplePacket(nan.copy())
    assert hash(SamplePacket(nan)) == hash(SamplePacket(nan.copy()))
    assert SamplePacket(np.array([0.0], dtype="<f4")) != SamplePacket(np.array([-0.0], dtype="<f4"))
    assert SamplePacket(np.array([1.0], dtype="<f4")) != SamplePacket(np.array([1.0], dtype="<f8"))


def test_sample_packet_repr():
    assert repr(SamplePacket(np.array([1.0, -1.0], dtype="<f4"))) == "SamplePacket([1.0, -1.0])"


def test_sample_packet_must_be_one_dimensional():
    with pytest.raises(ValueError):
        SamplePacket(np.zeros((2, 2)))

####################################################################################
# Protocol
####################################################################################

def test_default_protocol():
    protocol = ScopeProtocol()
    assert (protocol.marker, protocol.kind_sample, protocol.kind_reset) == (0xFF, 0x01, 0x02)
    assert protocol.channel_count == 8
    assert protocol.sample_payload_size == 32
    assert protocol.header_size == 3
    assert protocol.max_frame_size == 258
    assert protocol.sample_dtype == np.dtype("<f4")


def test_expected_length(protocol):
    assert protocol.expected_length(protocol.kind_sample) == protocol.sample_payload_size
    assert protocol.expected_length(protocol.kind_reset) == 0
    unknown = next(k for k in range(256) if k not in (protocol.kind_sample, protocol.kind_reset))
    assert protocol.expected_length(unknown) is None


def test_encode(two_channels):
    assert two_channels.encode_samples([1.0, -1.0]) == b"\xff\x01\x08" + struct.pack("<2f", 1.0, -1.0)
    assert two_channels.encode_reset() == b"\xff\x02\x00"
    with pytest.raises(ValueError):
        two_channels.encode_samples([1.0])


@pytest.mark.parametrize("kwargs", [
    dict(marker=256),
    dict(kind_sample=-1),
    dict(kind_sample=3, kind_reset=3),
    dict(sample_format="i"),
    dict(byte_order="="),
    dict(channel_count=0),
    dict(channel_count=64, sample_format="f"),
    dict(channel_count=32, sample_format="d"),
])
def test_invalid_protocol(kwargs):
    with pytest.raises(ValueError):
        ScopeProtocol(**kwargs)


def test_largest_payload_fits():
    protocol = ScopeProtocol(channel_count=63, sample_format="f")
    assert protocol.sample_payload_size == 252
