############################################################################################################################################
# QT Serial Helper
#
# QScopeDemux:    Qt front end of the scope stream demultiplexer, turns raw serial chunks into text, packet and reset signals.
# QSerial:        Serial link to the drive. Owns the QSerialPort, lists ports, opens and closes the link, sends commands and hands
#                 every read to QScopeDemux.
#
# Everything runs in the GUI thread. QSerialPort notifies with readyRead, each notification is processed completely before the next
# one, which keeps the demultiplexer strictly sequential.
#
# This code is maintained by the Servoterm developers
############################################################################################################################################

# ==============================================================================
# Configuration
# ==============================================================================
from config import (PROFILEME, DEBUGSERIAL, DEBUG_LEVEL,
                    DEFAULT_BAUDRATE, SERIAL_BUFFER_SIZE, THROUGHPUT_INTERVAL,
                    STMBL_USB_VENDOR_ID, STMBL_USB_PRODUCT_ID,
                    STMBL_MANUFACTURER, STMBL_DESCRIPTION,
                    LINE_TERMINATOR, RESET_COMMANDS, ENCODING,
                    )
# ==============================================================================
# Imports
# ==============================================================================
import time
import logging
import textwrap
#
# Custom Imports
# ----------------------------------------
from helpers.Scope_helper import ScopeDataDemux, ScopeProtocol, ResetEvent
#
# QT Libraries
# ----------------------------------------
try:
    from PyQt6.QtCore import (
        QObject, QTimer, pyqtSignal, pyqtSlot, QByteArray, QIODevice,
    )
    from PyQt6.QtSerialPort import QSerialPort, QSerialPortInfo
    OpenModeReadWrite = QIODevice.OpenModeFlag.ReadWrite
    ClearAllDirections = QSerialPort.Direction.AllDirections
    DataBits8 = QSerialPort.DataBits.Data8
    ParityNone = QSerialPort.Parity.NoParity
    StopBitsOne = QSerialPort.StopBits.OneStop
    FlowControlNone = QSerialPort.FlowControl.NoFlowControl
    Serial_NoError = QSerialPort.SerialPortError.NoError
    Serial_ResourceError = QSerialPort.SerialPortError.ResourceError
except Exception:
    from PyQt5.QtCore import (
        QObject, QTimer, pyqtSignal, pyqtSlot, QByteArray, QIODevice,
    )
    from PyQt5.QtSerialPort import QSerialPort, QSerialPortInfo
    OpenModeReadWrite = QIODevice.ReadWrite
    ClearAllDirections = QSerialPort.AllDirections
    DataBits8 = QSerialPort.Data8
    ParityNone = QSerialPort.NoParity
    StopBitsOne = QSerialPort.OneStop
    FlowControlNone = QSerialPort.NoFlowControl
    Serial_NoError = QSerialPort.NoError
    Serial_ResourceError = QSerialPort.ResourceError
#
# Profiling
# ----------------------------------------
try:
    profile                                                                    # provided by kernprof at runtime
except NameError:
    def profile(func):                                                         # no-op when not profiling
        return func

# ==============================================================================
# Port identification
# ==============================================================================

def is_stmbl_port(manufacturer: str, description: str, vid: int = None, pid: int = None) -> bool:
    """
    True if a port looks like the drive's USB virtual COM port.
    """
    if STMBL_MANUFACTURER in (manufacturer or ""):
        return True
    if STMBL_DESCRIPTION in (description or ""):
        return True
    return vid == STMBL_USB_VENDOR_ID and pid == STMBL_USB_PRODUCT_ID

############################################################################################################################################
############################################################################################################################################
#
# QScopeDemux
#
# Qt signal front end of ScopeDataDemux. For every chunk the decoded text is emitted first, then the frame events in the order
# their frames completed.
#
############################################################################################################################################
############################################################################################################################################

class QScopeDemux(QObject):
    """
    Scope stream demultiplexer for QT

    Signals
        receivedText(str)               console text decoded from the chunk
        scopePacketReceived(object)     SamplePacket with channel_count values
        scopeResetReceived()            device requested a reset of the rolling index

    Slots
        on_receivedData(bytes)          process one chunk of serial data
        on_reset()                      start over, called on connect and disconnect
    """

    receivedText        = pyqtSignal(str)
    scopePacketReceived = pyqtSignal(object)
    scopeResetReceived  = pyqtSignal()

    def __init__(self, parent=None, protocol: ScopeProtocol = None, encoding: str = ENCODING, logger=None):
        super().__init__(parent)
        self.instance_name = self.objectName() if self.objectName() else self.__class__.__name__
        if logger is None:
            logger = logging.getLogger(self.instance_name[:10])
        self.logger = logger
        self.demux = ScopeDataDemux(protocol=protocol, encoding=encoding, logger=logger)

    @pyqtSlot(bytes)
    def on_receivedData(self, data: bytes) -> None:
        result = self.demux.feed(data)
        if result.text:
            self.receivedText.emit(result.text)
        for event in result.events:
            if isinstance(event, ResetEvent):
                self.scopeResetReceived.emit()
            else:
                self.scopePacketReceived.emit(event)

    @pyqtSlot()
    def on_reset(self) -> None:
        self.demux.reset()

############################################################################################################################################
############################################################################################################################################
#
# QSerial: serial link to the drive
#
############################################################################################################################################
############################################################################################################################################

class QSerial(QObject):
    """
    Serial Interface for QT

    Signals
        receivedData(bytes)              raw chunk read from the port
        newPortListReady(list, list, list) ports, descriptions, hardware ids after a scan
        connectionChanged(bool)          port opened or closed
        throughputReady(float, float)    received and sent bytes per second
        logSignal(int, str)              logging

    Slots
        on_dataReady()                   read everything available and pass it on
        on_errorOccurred(error)          port failure, closes the link when the device disappeared
        on_throughputTimer()             report throughput
        on_mtocRequest()                 emit profiling message

    Functions
        scanPorts()                      list serial ports, drive ports first
        openPort(str, int)               open serial port
        closePort()                      close serial port
        sendLine(str)                    send one command line
        sendReset()                      clear a latched fault on the drive
        writeData(bytes)                 write raw bytes
        cleanup()                        stop timers and close the port
    """

    # Signals
    # ==========================================================================
    receivedData        = pyqtSignal(bytes)                                    # raw data read from the port
    newPortListReady    = pyqtSignal(list, list, list)                         # updated list of serial ports is available
    connectionChanged   = pyqtSignal(bool)                                     # port opened or closed
    throughputReady     = pyqtSignal(float, float)                             # rx, tx bytes per second
    logSignal           = pyqtSignal(int, str)                                 # Logging

    # Init
    # ==========================================================================

    def __init__(self, parent=None, demux: QScopeDemux = None):

        super().__init__(parent)

        self.instance_name = self.objectName() if self.objectName() else self.__class__.__name__

        self.logger = logging.getLogger(self.instance_name[:10])
        self.logger.setLevel(DEBUG_LEVEL)

        self.QSer = QSerialPort(self)
        self.QSer.readyRead.connect(self.on_dataReady)
        self.QSer.errorOccurred.connect(self.on_errorOccurred)

        # the demultiplexer is told about every open and close
        self.demux = demux if demux is not None else QScopeDemux(self)
        self.receivedData.connect(self.demux.on_receivedData)

        self.serialPorts      = []                                             # e.g. COM6, ttyACM0
        self.serialPortNames  = []                                             # human readable
        self.serialPortHWIDs  = []                                             # VID:PID
        self.portName         = ""
        self.baud             = DEFAULT_BAUDRATE

        self.bytes_received   = 0
        self.bytes_sent       = 0
        self.lastNumReceived  = 0
        self.lastNumSent      = 0
        self.lastNumComputed  = time.perf_counter()

        self.mtoc_read = 0.
        self.mtoc_write = 0.

        self.throughputTimer = QTimer(self)
        self.throughputTimer.setInterval(THROUGHPUT_INTERVAL)
        self.throughputTimer.timeout.connect(self.on_throughputTimer)

    # ==========================================================================
    # Utility Functions
    # ==========================================================================

    @property
    def isOpen(self) -> bool:
        return self.QSer.isOpen()

    def scanPorts(self) -> list:
        """
        Scan for serial ports, ports of the drive are listed first
        """
        found = []
        for info in QSerialPortInfo.availablePorts():
            vid = info.vendorIdentifier() if info.hasVendorIdentifier() else None
            pid = info.productIdentifier() if info.hasProductIdentifier() else None
            hwid = f"{vid:04X}:{pid:04X}" if vid is not None and pid is not None else ""
            stmbl = is_stmbl_port(info.manufacturer(), info.description(), vid, pid)
            found.append((not stmbl, info.portName(), info.description(), hwid))
        found.sort(key=lambda entry: (entry[0], entry[1]))

        self.serialPorts     = [entry[1] for entry in found]
        self.serialPortNames = [entry[2] for entry in found]
        self.serialPortHWIDs = [entry[3] for entry in found]

        self.logSignal.emit(logging.DEBUG,
            f"[{self.instance_name[:15]:<15}]: Found {len(self.serialPorts)} serial ports."
        )
        self.newPortListReady.emit(self.serialPorts, self.serialPortNames, self.serialPortHWIDs)
        return self.serialPorts

    def openPort(self, name: str, baud: int = DEFAULT_BAUDRATE) -> bool:
        """
        Open the serial port, the demultiplexer starts from scratch
        """
        if self.QSer.isOpen():
            self.logSignal.emit(logging.ERROR,
                f"[{self.instance_name[:15]:<15}]: Already connected to {self.QSer.portName()}."
            )
            return False
        if not name:
            self.logSignal.emit(logging.ERROR,
                f"[{self.instance_name[:15]:<15}]: No port selected."
            )
            return False

        self.QSer.setPortName(name)
        self.QSer.setBaudRate(baud)
        self.QSer.setDataBits(DataBits8)
        self.QSer.setParity(ParityNone)
        self.QSer.setStopBits(StopBitsOne)
        self.QSer.setFlowControl(FlowControlNone)
        self.QSer.setReadBufferSize(SERIAL_BUFFER_SIZE)

        # a fresh link carries no guarantee of frame alignment
        self.demux.on_reset()

        if not self.QSer.open(OpenModeReadWrite):
            self.logSignal.emit(logging.ERROR,
                f"[{self.instance_name[:15]:<15}]: Unable to open port {name}: {self.QSer.errorString()}."
            )
            return False

        self.portName = name
        self.baud = baud
        self.bytes_received = 0
        self.bytes_sent     = 0
        self.lastNumReceived = 0
        self.lastNumSent     = 0
        self.lastNumComputed = time.perf_counter()
        self.throughputTimer.start()

        self.logSignal.emit(logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Opened port {name} at {baud} baud."
        )
        self.connectionChanged.emit(True)
        return True

    def closePort(self) -> None:
        """
        Close the serial port, an incomplete frame is dropped
        """
        if not self.QSer.isOpen():
            self.logSignal.emit(logging.WARNING,
                f"[{self.instance_name[:15]:<15}]: Already disconnected."
            )
            return
        self.throughputTimer.stop()
        try:
            self.QSer.clear(ClearAllDirections)
            self.QSer.close()
        except Exception as e:
            self.logSignal.emit(logging.ERROR,
                f"[{self.instance_name[:15]:<15}]: Failed to close port - {e}"
            )
        if self.QSer.isOpen():
            self.logSignal.emit(logging.ERROR,
                f"[{self.instance_name[:15]:<15}]: Port is open but cannot be closed."
            )
            return
        self.demux.on_reset()
        self.logSignal.emit(logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Closed port {self.portName}."
        )
        self.portName = ""
        self.connectionChanged.emit(False)

    @profile
    def writeData(self, data: bytes) -> bool:
        if not self.QSer.isOpen():
            self.logSignal.emit(logging.WARNING,
                f"[{self.instance_name[:15]:<15}]: Serial port not open."
            )
            return False

        if PROFILEME:
            tic = time.perf_counter()

        l_w = self.QSer.write(QByteArray(data))
        if l_w != len(data):
            self.logSignal.emit(logging.ERROR,
                f"[{self.instance_name[:15]:<15}]: Tx wrote {l_w} of {len(data)} bytes."
            )
            return False
        self.bytes_sent += l_w

        if DEBUGSERIAL:
            self.logSignal.emit(logging.DEBUG,
                f"[{self.instance_name[:15]:<15}]: Tx {l_w} bytes."
            )
        if PROFILEME:
            self.mtoc_write = max(time.perf_counter() - tic, self.mtoc_write)
        return True

    def sendLine(self, line: str) -> bool:
        """
        Send one command, the drive expects latin-1 text terminated by newline
        """
        return self.writeData(line.encode(ENCODING, errors="replace") + LINE_TERMINATOR)

    def sendReset(self) -> bool:
        """
        Disable and enable the fault handler, clears a latched fault
        """
        for command in RESET_COMMANDS:
            if not self.writeData(command):
                return False
        return True

    # ==========================================================================
    # Slots
    # ==========================================================================

    @pyqtSlot()
    @profile
    def on_dataReady(self) -> None:
        """
        Read all bytes available on serial RX and hand them on as one chunk
        """
        if PROFILEME:
            tic = time.perf_counter()

        chunk = bytes(self.QSer.readAll())
        if not chunk:
            return
        self.bytes_received += len(chunk)
        self.receivedData.emit(chunk)

        if DEBUGSERIAL:
            self.logSignal.emit(logging.DEBUG,
                f"[{self.instance_name[:15]:<15}]: Rx {len(chunk)} bytes."
            )
        if PROFILEME:
            self.mtoc_read = max(time.perf_counter() - tic, self.mtoc_read)

    def on_errorOccurred(self, error) -> None:
        if error == Serial_NoError:
            return
        self.logSignal.emit(logging.ERROR,
            f"[{self.instance_name[:15]:<15}]: Serial error: {self.QSer.errorString()}."
        )
        # device unplugged
        if error == Serial_ResourceError and self.QSer.isOpen():
            self.closePort()

    @pyqtSlot()
    def on_throughputTimer(self) -> None:
        now = time.perf_counter()
        elapsed = now - self.lastNumComputed
        if elapsed <= 0:
            return
        rx = (self.bytes_received - self.lastNumReceived) / elapsed
        tx = (self.bytes_sent - self.lastNumSent) / elapsed
        self.lastNumReceived = self.bytes_received
        self.lastNumSent = self.bytes_sent
        self.lastNumComputed = now
        self.throughputReady.emit(rx, tx)

    @pyqtSlot()
    def on_mtocRequest(self) -> None:
        demux = self.demux.demux
        log_message = textwrap.dedent(f"""
            Serial Profiling
            =============================================================
            mtoc_read               took {self.mtoc_read*1000:.2f} ms
            mtoc_write              took {self.mtoc_write*1000:.2f} ms
            packets received        {demux.packets_received}
            resets received         {demux.resets_received}
            framing errors          {demux.framing_errors}
        """)
        self.logSignal.emit(-1, log_message)
        self.mtoc_read = 0.
        self.mtoc_write = 0.

    def cleanup(self) -> None:
        """
        Stop throughput timer and close the port
        """
        self.throughputTimer.stop()
        if self.QSer.isOpen():
            self.closePort()
        self.logSignal.emit(logging.INFO,
            f"[{self.instance_name[:15]:<15}]: Cleaned up."
        )
