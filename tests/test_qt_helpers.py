import logging

import numpy as np
import pytest

try:
    from helpers.Qserial_helper import QScopeDemux, QSerial, is_stmbl_port
    from helpers.Qgraph_helper import QScopeChart
    from helpers.Qtextlog_helper import QTextLog
except ImportError:
    pytest.skip("no Qt binding", allow_module_level=True)

from helpers.Scope_helper import ScopeProtocol, SamplePacket, ParserState


def record(qdemux):
    received = []
    qdemux.receivedText.connect(lambda text: received.append(("text", text)))
    qdemux.scopePacketReceived.connect(lambda packet: received.append(("packet", packet.tolist())))
    qdemux.scopeResetReceived.connect(lambda: received.append(("reset",)))
    return received

####################################################################################
# QScopeDemux
####################################################################################

def test_text_is_emitted_before_events(qapp, two_channels):
    qdemux = QScopeDemux(protocol=two_channels)
    received = record(qdemux)
    qdemux.on_receivedData(
        two_channels.encode_samples([1.0, -1.0]) + b"ok\n" + two_channels.encode_reset() + b"x"
    )
    assert received == [("text", "ok\nx"), ("packet", [1.0, -1.0]), ("reset",)]


def test_nothing_emitted_for_partial_frame(qapp, two_channels):
    qdemux = QScopeDemux(protocol=two_channels)
    received = record(qdemux)
    frame = two_channels.encode_samples([0.5, 0.25])
    qdemux.on_receivedData(frame[:5])
    assert received == []
    qdemux.on_receivedData(frame[5:])
    assert received == [("packet", [0.5, 0.25])]


def test_on_reset_drops_partial_frame(qapp, two_channels):
    qdemux = QScopeDemux(protocol=two_channels)
    received = record(qdemux)
    qdemux.on_receivedData(two_channels.encode_samples([0.5, 0.25])[:6])
    qdemux.on_reset()
    assert qdemux.demux.state is ParserState.SCANNING_TEXT
    qdemux.on_receivedData(b"hi")
    assert received == [("text", "hi")]

####################################################################################
# QSerial
####################################################################################

@pytest.mark.parametrize("manufacturer, description, vid, pid, expected", [
    ("STMicroelectronics", "", None, None, True),
    ("", "STMBL", None, None, True),
    ("", "", 0x0483, 0x5740, True),
    ("FTDI", "USB Serial", 0x0403, 0x6001, False),
    (None, None, None, None, False),
])
def test_is_stmbl_port(manufacturer, description, vid, pid, expected):
    assert is_stmbl_port(manufacturer, description, vid, pid) is expected


def test_serial_without_port(qapp):
    serial = QSerial()
    messages = []
    serial.logSignal.connect(lambda level, message: messages.append(level))
    assert not serial.isOpen
    assert serial.sendLine("fault0.en = 1") is False
    assert serial.sendReset() is False
    assert serial.openPort("") is False
    serial.closePort()
    assert messages == [logging.WARNING, logging.WARNING, logging.ERROR, logging.WARNING]


def test_serial_chunks_reach_the_demux(qapp):
    serial = QSerial()
    received = record(serial.demux)
    serial.receivedData.emit(b"ok\n" + ScopeProtocol().encode_reset())
    assert received == [("text", "ok\n"), ("reset",)]


def test_scan_ports_lists_names(qapp):
    serial = QSerial()
    lists = []
    serial.newPortListReady.connect(lambda ports, names, hwids: lists.append((ports, names, hwids)))
    ports = serial.scanPorts()
    assert lists == [(ports, serial.serialPortNames, serial.serialPortHWIDs)]
    assert len(ports) == len(serial.serialPortNames) == len(serial.serialPortHWIDs)

####################################################################################
# QScopeChart
####################################################################################

def test_chart_rolls_and_resets(qapp):
    chart = QScopeChart(channels=2, window_length=4)
    for i in range(5):
        chart.on_scopePacketReceived(SamplePacket(np.array([i, -i], dtype="<f4")))
    chart.updatePlot()
    assert chart.buffer.index == 1
    assert chart.cursor.value() == 1
    assert chart.buffer.data[:, 0].tolist() == [4.0, 1.0, 2.0, 3.0]

    chart.on_scopeResetReceived()
    chart.updatePlot()
    assert chart.buffer.index == 0
    assert chart.cursor.value() == 0

    chart.on_pushButton_ChartClear()
    assert chart.buffer.counter == 0
    assert np.isnan(chart.buffer.data).all()
    chart.cleanup()
    assert chart.data_traces == []


@pytest.mark.parametrize("channels", [0, 17])
def test_chart_channel_limits(qapp, channels):
    with pytest.raises(ValueError):
        QScopeChart(channels=channels)

####################################################################################
# QTextLog
####################################################################################

def test_text_log_appends_across_chunks(qapp):
    log = QTextLog()
    log.on_receivedText("boot")
    log.on_receivedText("ok\n")
    log.on_receivedText("\nnext")
    assert log.toPlainText() == "bootok\n\nnext"


def test_text_log_renders_markup(qapp):
    log = QTextLog()
    log.on_receivedText('<font color="red">fault</font>')
    assert log.toPlainText() == "fault"


def test_text_log_status(qapp):
    log = QTextLog()
    log.appendStatus("connected")
    assert "connected" in log.toPlainText()

####################################################################################
# Main window
####################################################################################

def test_main_window_routes_demux_output(qapp):
    from Servoterm import mainWindow
    win = mainWindow()
    assert not win.pushButton_Disconnect.isEnabled()
    assert not win.pushButton_Send.isEnabled()
    assert not win.pushButton_Reset.isEnabled()
    win.demux.on_receivedData(b"hello\n" + win.demux.demux.protocol.encode_reset())
    assert "hello" in win.textLog.toPlainText()
    assert win.pushButton_Clear.isEnabled()
    win.pushButton_Clear.click()
    assert win.textLog.toPlainText() == ""
    win.close()
