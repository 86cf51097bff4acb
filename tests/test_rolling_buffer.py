import numpy as np
import pytest

from helpers.Rolling_Buffer import RollingBuffer


def test_starts_empty():
    buffer = RollingBuffer(5, 2)
    assert buffer.shape == (5, 2)
    assert np.isnan(buffer.data).all()
    assert buffer.index == 0
    assert buffer.filled == 0
    assert buffer.counter == 0
    assert buffer.x.tolist() == [0, 1, 2, 3, 4]


def test_push_advances_and_wraps():
    buffer = RollingBuffer(3, 1)
    rows = [buffer.push([float(i)]) for i in range(4)]
    assert rows == [0, 1, 2, 0]
    assert buffer.index == 1
    assert buffer.filled == 3
    assert buffer.counter == 4
    assert buffer.data[:, 0].tolist() == [3.0, 1.0, 2.0]


def test_short_vectors_are_padded_long_ones_cut():
    buffer = RollingBuffer(2, 3)
    buffer.push([1.0])
    buffer.push([1.0, 2.0, 3.0, 4.0])
    assert buffer.data[0, 0] == 1.0
    assert np.isnan(buffer.data[0, 1:]).all()
    assert buffer.data[1].tolist() == [1.0, 2.0, 3.0]


def test_reset_index_keeps_data():
    buffer = RollingBuffer(4, 1)
    for v in (1.0, 2.0, 3.0):
        buffer.push([v])
    buffer.reset_index()
    assert buffer.index == 0
    assert buffer.filled == 3
    buffer.push([9.0])
    assert buffer.data[:, 0].tolist()[:3] == [9.0, 2.0, 3.0]


def test_clear():
    buffer = RollingBuffer(4, 2)
    buffer.push([1.0, 2.0])
    buffer.clear()
    assert np.isnan(buffer.data).all()
    assert (buffer.index, buffer.filled, buffer.counter) == (0, 0, 0)


def test_data_is_read_only():
    buffer = RollingBuffer(2, 1)
    with pytest.raises(ValueError):
        buffer.data[0, 0] = 1.0


def test_float32_input_is_widened():
    buffer = RollingBuffer(2, 2)
    buffer.push(np.array([0.1, np.nan], dtype=np.float32))
    assert buffer.data[0, 0] == np.float64(np.float32(0.1))
    assert np.isnan(buffer.data[0, 1])


@pytest.mark.parametrize("window_length, channels", [(0, 1), (1, 0), (-1, 2)])
def test_invalid_size(window_length, channels):
    with pytest.raises(ValueError):
        RollingBuffer(window_length, channels)


def test_integer_dtype_is_refused():
    with pytest.raises(TypeError):
        RollingBuffer(2, 2, dtype=np.int32)
