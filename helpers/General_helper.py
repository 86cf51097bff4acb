############################################################################################################################################
# General Support Functions
#
#  Signals: connect, disconnect
#  Formatting: format_rate
#
# This code is maintained by the Servoterm developers
############################################################################################################################################
#
try:
    from PyQt6.QtCore import pyqtSignal, pyqtSlot, Qt
    ConnectionType= Qt.ConnectionType
except Exception:
    from PyQt5.QtCore import pyqtSignal, pyqtSlot, Qt
    ConnectionType= Qt
#

# ==============================================================================
# Signal/Slot Helpers
# ==============================================================================

def connect(signal: pyqtSignal, slot: pyqtSlot, unique: bool = True)-> bool:
    try:
        signal.connect(slot, type=ConnectionType.UniqueConnection if unique else ConnectionType.AutoConnection)
        return True
    except TypeError:
        return False

def disconnect(signal: pyqtSignal, slot: pyqtSlot = None)-> bool:
    try:
        if slot is None:
            signal.disconnect()
        else:
            signal.disconnect(slot)
        return True
    except TypeError:
        return False

# ==============================================================================
# Formatting
# ==============================================================================

def format_rate(value: float, unit: str = "B/s") -> str:
    """
    Human readable rate, e.g. 1536 -> '1.5 kB/s'
    """
    value = float(value)
    for prefix in ("", "k", "M"):
        if abs(value) < 1000.0 or prefix == "M":
            break
        value /= 1000.0
    if prefix == "":
        return f"{value:.0f} {unit}"
    return f"{value:.1f} {prefix}{unit}"
