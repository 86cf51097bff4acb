############################################################################################################################################
# QT Chart Helper
#
# Rolling oscilloscope view of the drive's scope channels in PyQtGraph.
#
# Each sample packet is written at the rolling index of a RollingBuffer. The index advances by one per packet and wraps at the
# window length, a vertical cursor marks where new data overwrites old. A reset event moves the index back to the start.
# Drawing happens on a timer, packets only touch the buffer.
#
# This code is maintained by the Servoterm developers
############################################################################################################################################
#
# ==============================================================================
# Configuration
# ==============================================================================
from config import ( SAMPLE_WINDOW_LENGTH, SCOPE_CHANNEL_COUNT, MAX_CHANNELS,
                     UPDATE_INTERVAL, Y_RANGE, LINEWIDTH, COLORS,
                     CURSOR_COLOR, CHART_BACKGROUND_COLOR,
                     DEBUGCHART, PROFILEME, DEBUG_LEVEL )
# ==============================================================================
# Imports
# ==============================================================================
#
# General Imports
# ----------------------------------------
import logging
import time
import textwrap
import numpy as np
#
# QT Libraries
# ----------------------------------------
try:
    from PyQt6.QtCore import Qt, QObject, QTimer, pyqtSlot, pyqtSignal
    PreciseTimerType = Qt.TimerType.PreciseTimer
except Exception:
    from PyQt5.QtCore import Qt, QObject, QTimer, pyqtSlot, pyqtSignal
    PreciseTimerType = Qt.PreciseTimer
#
# QtGraph
# ----------------------------------------
import pyqtgraph                               as     pg
from   pyqtgraph                               import PlotWidget
#
# Custom Helpers
# ----------------------------------------
from helpers.Rolling_Buffer import RollingBuffer
#
# Profiling
# ----------------------------------------
try:
    profile                                                                    # provided by kernprof at runtime
except NameError:
    def profile(func):                                                         # no-op when not profiling
        return func

############################################################################################################################################
#
# QScopeChart interaction with Graphical User Interface
#
############################################################################################################################################

class QScopeChart(QObject):
    """
    Oscilloscope for QT

    Signals
        throughputUpdate(float, float, str)  packets per second drawn on chart ("chart")
        logSignal(int, str)                  logging

    Slots
        on_scopePacketReceived(SamplePacket) store one sample vector at the rolling index
        on_scopeResetReceived()              move the rolling index to the start
        on_pushButton_ChartClear()           blank the chart
        on_throughputTimer()                 report packets per second
        on_mtocRequest()                     emit profiling message

    Functions
        updatePlot()                         redraw traces and cursor, called by timer
        start(), stop()                      start or stop redrawing
        cleanup()                            stop timers, remove traces
    """

    # Signals
    # ==========================================================================
    throughputUpdate = pyqtSignal(float, float, str)                           # report rx/tx to main ("chart")
    logSignal        = pyqtSignal(int, str)                                    # Logging

    # Init
    # ==========================================================================
    def __init__(self, parent=None, channels: int = SCOPE_CHANNEL_COUNT, window_length: int = SAMPLE_WINDOW_LENGTH):

        super().__init__(parent)

        self.instance_name = self.objectName() if self.objectName() else self.__class__.__name__

        self.logger = logging.getLogger(self.instance_name[:10])
        self.logger.setLevel(DEBUG_LEVEL)

        if not (0 < channels <= MAX_CHANNELS):
            raise ValueError(f"channels must be between 1 and {MAX_CHANNELS}, got {channels}")

        self.mtoc_updatePlot = 0.

        self.y_min, self.y_max = Y_RANGE
        self.buffer = RollingBuffer(window_length, channels, dtype=np.float64)
        self.previous_counter = 0                                              # detect new data in updatePlot
        self.needs_redraw = False                                              # cleared or reset without new data

        # Create the pyqtgraph chart
        self.chartWidgetPG = PlotWidget()
        self.chartWidgetPG.setBackground(CHART_BACKGROUND_COLOR)
        self.chartWidgetPG.setTitle("Oscilloscope")
        self.chartWidgetPG.setMinimumSize(600, 256)
        self.chartWidgetPG.hideAxis("bottom")
        self.chartWidgetPG.hideAxis("left")

        self.viewBox = self.chartWidgetPG.getViewBox()
        self.viewBox.setDefaultPadding(0)                                      # no padding when auto ranging
        self.viewBox.disableAutoRange(pg.ViewBox.XAxis)                        # fixed window
        self.viewBox.disableAutoRange(pg.ViewBox.YAxis)                        # chart owns the visual range
        self.viewBox.setMouseEnabled(x=False, y=True)
        self.chartWidgetPG.setXRange(0, window_length)
        self.chartWidgetPG.setYRange(self.y_min, self.y_max)

        # Trace Colors
        self.pensPG = [pg.mkPen(color, width=LINEWIDTH) for color in COLORS]

        self.data_traces = []
        for idx in range(channels):
            data_trace = self.chartWidgetPG.plot(
                [],
                [],
                pen=self.pensPG[idx % len(self.pensPG)],
                antialias=False,
                connect='finite',                                              # gaps where rows are NaN
            )
            self.data_traces.append(data_trace)

        # Where new data overwrites the old
        self.cursor = pg.InfiniteLine(pos=0, angle=90, movable=False, pen=pg.mkPen(CURSOR_COLOR, width=1))
        self.chartWidgetPG.addItem(self.cursor)

        # Set up timer for Plot update
        self.ChartTimer = QTimer(self)
        self.ChartTimer.setTimerType(PreciseTimerType)
        self.ChartTimer.setInterval(UPDATE_INTERVAL)
        self.ChartTimer.timeout.connect(self.updatePlot)

        # Throughput computation
        self.throughputTimer = QTimer(self)
        self.throughputTimer.setInterval(1000)                                 # every second
        self.throughputTimer.timeout.connect(self.on_throughputTimer)
        self.packets_received = 0

        self.logger.log(
            logging.INFO,
            f"[{self.instance_name[:15]:<15}]: QScopeChart initialized with {channels} channels."
        )

    @property
    def widget(self) -> PlotWidget:
        return self.chartWidgetPG

    # ==========================================================================
    # Slots
    # ==========================================================================

    @pyqtSlot(object)
    def on_scopePacketReceived(self, packet) -> None:
        """
        Store one sample vector, values are plotted as received
        """
        self.buffer.push(packet.values if hasattr(packet, "values") else packet)
        self.packets_received += 1

    @pyqtSlot()
    def on_scopeResetReceived(self) -> None:
        self.buffer.reset_index()
        self.needs_redraw = True
        if DEBUGCHART:
            self.logSignal.emit(logging.DEBUG,
                f"[{self.instance_name[:15]:<15}]: Scope reset, rolling index back to 0."
            )

    @pyqtSlot()
    def on_pushButton_ChartClear(self) -> None:
        """
        Clear data buffer then update plot
        """
        self.buffer.clear()
        self.previous_counter = 0
        self.needs_redraw = True
        self.updatePlot()
        self.logSignal.emit(
            logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Cleared plotted data."
        )

    @pyqtSlot()
    @profile
    def updatePlot(self) -> None:
        """
        Redraw traces and the rolling cursor if new data arrived
        """
        counter = self.buffer.counter
        if counter == self.previous_counter and not self.needs_redraw:
            return                                                             # no new data
        self.previous_counter = counter
        self.needs_redraw = False

        tic = time.perf_counter()

        x_vals = self.buffer.x
        y_vals = self.buffer.data
        for i, data_trace in enumerate(self.data_traces):
            data_trace.setData(x_vals, y_vals[:, i])
        self.cursor.setValue(self.buffer.index)

        toc = time.perf_counter()
        if PROFILEME:
            self.mtoc_updatePlot = max(toc - tic, self.mtoc_updatePlot)

    @pyqtSlot()
    def on_throughputTimer(self) -> None:
        pps = self.packets_received                                            # packets per second
        self.packets_received = 0
        self.throughputUpdate.emit(float(pps), 0.0, "chart")

    @pyqtSlot()
    def on_mtocRequest(self) -> None:
        log_message = textwrap.dedent(f"""
            Chart UI Profiling
            =============================================================
            mtoc_updatePlot         took {self.mtoc_updatePlot*1000:.2f} ms
        """)
        self.logSignal.emit(-1, log_message)
        self.mtoc_updatePlot = 0.

    # ==========================================================================
    # Functions
    # ==========================================================================

    def start(self) -> None:
        self.ChartTimer.start()
        self.throughputTimer.start()

    def stop(self) -> None:
        self.ChartTimer.stop()
        self.throughputTimer.stop()

    def cleanup(self) -> None:
        """
        Stop the timers and remove traces
        """
        self.stop()
        for data_trace in self.data_traces:
            self.chartWidgetPG.removeItem(data_trace)
        self.data_traces.clear()
        self.logSignal.emit(
            logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Chart cleaned up."
        )
