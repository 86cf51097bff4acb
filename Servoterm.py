#!/usr/bin/env python3
############################################################################################################################################
# Servo Terminal App
# ******************
#
# - Serial terminal for the STMBL servo drive
#     - sends commands typed into the command line
#     - displays console output of the drive, including its simple markup
# - Plots the drive's oscilloscope channels in a rolling view
#     - oscilloscope frames and console text share one serial link and are separated by the scope demultiplexer
#
# Configurations can be changed in config.py
#
# This code is maintained by the Servoterm developers
############################################################################################################################################
# ==============================================================================
# Config
# ==============================================================================
from config import (
    VERSION, APPLICATION_NAME,
    DEBUG_LEVEL, DEFAULT_BAUDRATE,
    SCOPE_CHANNEL_COUNT, SAMPLE_WINDOW_LENGTH, ENCODING,
)
# ==============================================================================
# Imports
# ==============================================================================
#
# Basic libraries
# ----------------------------------------
import sys
import logging
#
# QT imports, QT5 or QT6
# ----------------------------------------
try:
    from PyQt6.QtCore import pyqtSlot, pyqtSignal, QCoreApplication
    from PyQt6.QtWidgets import (
        QMainWindow, QLineEdit, QComboBox, QPushButton, QToolBar,
        QVBoxLayout, QHBoxLayout, QWidget, QApplication, QLabel,
    )
except Exception:
    from PyQt5.QtCore import pyqtSlot, pyqtSignal, QCoreApplication
    from PyQt5.QtWidgets import (
        QMainWindow, QLineEdit, QComboBox, QPushButton, QToolBar,
        QVBoxLayout, QHBoxLayout, QWidget, QApplication, QLabel,
    )
#
# Program's local class imports
# ----------------------------------------
#
from helpers.Scope_helper     import ScopeProtocol
from helpers.Qserial_helper   import QSerial, QScopeDemux
from helpers.Qgraph_helper    import QScopeChart
from helpers.Qtextlog_helper  import QTextLog
from helpers.General_helper   import connect, disconnect, format_rate

############################################################################################################################################
#
# Main Window
#
#    This is the Viewer of the Model - View - Controller (MVC) architecture.
#
############################################################################################################################################

class mainWindow(QMainWindow):
    """
    Main program that ties the classes and widgets together.

    Serial:
    QSerial reads the port, QScopeDemux separates console text from scope frames.

    Text Display:
    QTextLog shows the console output of the drive.

    Plotter:
    QScopeChart shows the scope channels in a rolling view.
    """

    mtocRequest = pyqtSignal()                                                 # request to emit profiling information

    def __init__(self, parent=None, logger=None):

        super().__init__(parent)

        self.instance_name = self.objectName() if self.objectName() else self.__class__.__name__

        if logger is None:
            self.logger = logging.getLogger(APPLICATION_NAME)
        else:
            self.logger = logger

        self.setWindowTitle(f"{APPLICATION_NAME} {VERSION}")

        # Widgets
        # ----------------------------------------
        self.comboBox_Ports    = QComboBox()
        self.comboBox_Ports.setMinimumContentsLength(12)
        self.pushButton_Scan       = QPushButton("Scan")
        self.pushButton_Connect    = QPushButton("Connect")
        self.pushButton_Disconnect = QPushButton("Disconnect")
        self.pushButton_Clear      = QPushButton("Clear")
        self.pushButton_Reset      = QPushButton("Reset")
        self.lineEdit_Text         = QLineEdit()
        self.pushButton_Send       = QPushButton("Send")
        self.label_Throughput      = QLabel("")
        self.label_ScopeRate       = QLabel("")

        # Scope demultiplexer, serial link, chart and text log
        # ----------------------------------------
        protocol   = ScopeProtocol(channel_count=SCOPE_CHANNEL_COUNT)
        self.demux  = QScopeDemux(self, protocol=protocol, encoding=ENCODING)
        self.serial = QSerial(self, demux=self.demux)
        self.chart  = QScopeChart(self, channels=protocol.channel_count, window_length=SAMPLE_WINDOW_LENGTH)
        self.textLog = QTextLog(self)

        # Layout
        # ----------------------------------------
        toolbar = QToolBar()
        toolbar.setObjectName("ConnectionToolBar")
        toolbar.addWidget(self.comboBox_Ports)
        toolbar.addWidget(self.pushButton_Scan)
        toolbar.addWidget(self.pushButton_Connect)
        toolbar.addWidget(self.pushButton_Disconnect)
        toolbar.addSeparator()
        toolbar.addWidget(self.pushButton_Clear)
        toolbar.addWidget(self.pushButton_Reset)
        self.addToolBar(toolbar)

        central = QWidget()
        vbox = QVBoxLayout(central)
        vbox.addWidget(self.chart.widget)
        vbox.addWidget(self.textLog)
        hbox = QHBoxLayout()
        hbox.addWidget(self.lineEdit_Text)
        hbox.addWidget(self.pushButton_Send)
        vbox.addLayout(hbox)
        self.setCentralWidget(central)
        self.statusBar().addPermanentWidget(self.label_ScopeRate)
        self.statusBar().addPermanentWidget(self.label_Throughput)

        # Signals
        # ----------------------------------------
        connect(self.demux.receivedText,          self.textLog.on_receivedText)
        connect(self.demux.scopePacketReceived,   self.chart.on_scopePacketReceived)
        connect(self.demux.scopeResetReceived,    self.chart.on_scopeResetReceived)

        connect(self.serial.newPortListReady,     self.on_newPortListReady)
        connect(self.serial.connectionChanged,    self.on_connectionChanged)
        connect(self.serial.throughputReady,      self.on_throughputReady)
        connect(self.serial.logSignal,            self.handle_log)
        connect(self.chart.logSignal,             self.handle_log)
        connect(self.chart.throughputUpdate,      self.on_scopeRateReady)
        connect(self.mtocRequest,                 self.serial.on_mtocRequest)
        connect(self.mtocRequest,                 self.chart.on_mtocRequest)

        self.pushButton_Scan.clicked.connect(         self.on_pushButton_Scan)
        self.pushButton_Connect.clicked.connect(      self.on_pushButton_Connect)
        self.pushButton_Disconnect.clicked.connect(   self.on_pushButton_Disconnect)
        self.pushButton_Clear.clicked.connect(        self.textLog.clear)
        self.pushButton_Reset.clicked.connect(        self.on_pushButton_Reset)
        self.pushButton_Send.clicked.connect(         self.on_pushButton_Send)
        self.lineEdit_Text.returnPressed.connect(     self.pushButton_Send.click)
        self.lineEdit_Text.textChanged.connect(       self.updateButtons)
        self.comboBox_Ports.currentIndexChanged.connect(self.updateButtons)
        self.textLog.textChanged.connect(             self.updateButtons)

        self.serial.scanPorts()
        self.chart.start()
        self.updateButtons()

        self.handle_log(logging.INFO, f"[{self.instance_name[:15]:<15}]: {APPLICATION_NAME} {VERSION} started.")

    # ==========================================================================
    # Logging
    # ==========================================================================

    @pyqtSlot(int, str)
    def handle_log(self, level: int, message: str) -> None:
        if level == -1:
            self.logger.log(logging.INFO, message)                             # profiling output
            return
        self.logger.log(level, message)
        if level >= logging.WARNING:
            self.statusBar().showMessage(message.split("]: ", 1)[-1], 5000)

    # ==========================================================================
    # Slots
    # ==========================================================================

    @pyqtSlot()
    def on_pushButton_Scan(self) -> None:
        self.serial.scanPorts()

    @pyqtSlot(list, list, list)
    def on_newPortListReady(self, ports: list, portNames: list, portHWIDs: list) -> None:
        current = self.comboBox_Ports.currentText()
        self.comboBox_Ports.blockSignals(True)                                 # no index changed signal while items are added
        self.comboBox_Ports.clear()
        for port, name in zip(ports, portNames):
            self.comboBox_Ports.addItem(port)
            self.comboBox_Ports.setItemData(self.comboBox_Ports.count() - 1, name)
        index = self.comboBox_Ports.findText(current)
        if index >= 0:
            self.comboBox_Ports.setCurrentIndex(index)
        self.comboBox_Ports.blockSignals(False)
        self.updateButtons()

    @pyqtSlot()
    def on_pushButton_Connect(self) -> None:
        self.serial.openPort(self.comboBox_Ports.currentText(), DEFAULT_BAUDRATE)

    @pyqtSlot()
    def on_pushButton_Disconnect(self) -> None:
        self.serial.closePort()

    @pyqtSlot(bool)
    def on_connectionChanged(self, connected: bool) -> None:
        self.textLog.appendStatus("connected" if connected else "disconnected")
        if connected:
            self.chart.on_pushButton_ChartClear()
        else:
            self.label_Throughput.setText("")
        self.updateButtons()

    @pyqtSlot()
    def on_pushButton_Reset(self) -> None:
        self.serial.sendReset()

    @pyqtSlot()
    def on_pushButton_Send(self) -> None:
        line = self.lineEdit_Text.text()
        self.lineEdit_Text.clear()
        self.serial.sendLine(line)

    @pyqtSlot(float, float)
    def on_throughputReady(self, rx: float, tx: float) -> None:
        self.label_Throughput.setText(f"Rx {format_rate(rx)}  Tx {format_rate(tx)}")

    @pyqtSlot(float, float, str)
    def on_scopeRateReady(self, rx: float, tx: float, source: str) -> None:
        self.label_ScopeRate.setText(f"Scope {format_rate(rx, unit='pkt/s')}" if rx else "")

    @pyqtSlot()
    def updateButtons(self) -> None:
        portSelected = bool(self.comboBox_Ports.currentText())
        portOpen     = self.serial.isOpen
        hasCommand   = bool(self.lineEdit_Text.text())
        self.pushButton_Connect.setEnabled(not portOpen and portSelected)
        self.pushButton_Disconnect.setEnabled(portOpen)
        self.pushButton_Clear.setEnabled(not self.textLog.document().isEmpty())
        self.pushButton_Reset.setEnabled(portOpen)
        self.pushButton_Send.setEnabled(portOpen and hasCommand)

    def closeEvent(self, event):
        """
        Close the serial port and stop the chart timers.
        """
        self.mtocRequest.emit()
        disconnect(self.mtocRequest)
        self.serial.cleanup()
        self.chart.cleanup()
        super().closeEvent(event)

############################################################################################################################################
# Main
############################################################################################################################################

def main() -> int:

    # Logging
    root_logger = logging.getLogger()
    root_logger.setLevel(DEBUG_LEVEL)
    sh = logging.StreamHandler()
    fmt = "[%(levelname)-8s] [%(name)-10s] %(message)s"
    sh.setFormatter(logging.Formatter(fmt))
    root_logger.addHandler(sh)

    app = QApplication(sys.argv)
    QCoreApplication.setApplicationName(APPLICATION_NAME)

    win = mainWindow(logger=logging.getLogger(APPLICATION_NAME))
    win.resize(1024, 768)
    win.show()
    try:
        exit_code = app.exec()                                                 # PyQt6
    except AttributeError:
        exit_code = app.exec_()                                                # PyQt5
    return exit_code

if __name__ == "__main__":
    sys.exit(main())
