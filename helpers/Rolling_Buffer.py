############################################################################################################################################
# Rolling Buffer
#
# Storage behind the rolling oscilloscope view. New samples overwrite the oldest ones at a cursor that sweeps from left to right
# and wraps around at the end of the window, like the trace of an analog scope.
#
# functions:
#   - push(values)  write one sample vector at the rolling index and advance the index
#   - reset_index() move the rolling index back to the start, data is kept
#   - clear()       reset the index and fill data with NaN
# properties:
#   - data          -> ndarray [window_length x channels], rows never written are NaN
#   - x             -> ndarray sample positions 0..window_length-1
#   - index         -> position the next sample is written to
#   - filled        -> number of rows that hold data
#   - counter       -> number of samples pushed since the last clear
#   - shape         -> (window_length, channels)
#
# This code is maintained by the Servoterm developers
############################################################################################################################################
#
import numpy as np

############################################################################################################################################
# RollingBuffer class
# ##########################################################################################################################################
class RollingBuffer:
    '''
    Fixed size window of sample vectors with a wrapping write index.

    - One row per sample vector, one column per channel.
    - Vectors shorter than the number of channels are padded with NaN, longer ones are cut.
    '''

    def __init__(self, window_length, channels, dtype=np.float64):
        ''' Initialize the rolling buffer '''
        if window_length <= 0 or channels <= 0:
            raise ValueError("window_length and channels must be > 0")
        if not np.issubdtype(np.dtype(dtype), np.floating):
            raise TypeError("dtype must be a floating type to support NaN padding")
        self._nrows  = window_length
        self._ncols  = channels
        self._dtype  = dtype
        self._data   = np.full((window_length, channels), np.nan, dtype=self._dtype)
        self._x      = np.arange(window_length, dtype=self._dtype)

        self._head    = 0                                                      # Next insert position, the rolling index
        self._filled  = 0                                                      # Number of rows holding data
        self._counter = 0                                                      # Samples pushed since clear

    def push(self, values) -> int:
        ''' Write one sample vector at the rolling index, returns the row that was written '''
        values = np.asarray(values, dtype=self._dtype).ravel()
        ncols = self._ncols
        row = self._head

        n = min(values.shape[0], ncols)
        self._data[row, :n] = values[:n]
        if n < ncols:
            self._data[row, n:] = np.nan                                       # missing channels

        self._head = row + 1
        if self._head >= self._nrows:
            self._head = 0                                                     # roll around
        self._filled = max(self._filled, row + 1)
        self._counter += 1
        return row

    def reset_index(self):
        ''' Continue writing at the start of the window, keep what is displayed '''
        self._head = 0

    def clear(self):
        ''' Reset index and counters and fill data with NaN '''
        self._data.fill(np.nan)
        self._head    = 0
        self._filled  = 0
        self._counter = 0

    @property
    def data(self) -> np.ndarray:
        ''' All rows of the window, read only view '''
        view = self._data.view()
        view.flags.writeable = False
        return view

    @property
    def x(self) -> np.ndarray:
        return self._x

    @property
    def index(self) -> int:
        return self._head

    @property
    def filled(self) -> int:
        return self._filled

    @property
    def counter(self) -> int:
        return self._counter

    @property
    def shape(self):
        return (self._nrows, self._ncols)

    @property
    def window_length(self) -> int:
        return self._nrows

    @property
    def channels(self) -> int:
        return self._ncols

    @property
    def dtype(self):
        return self._dtype
