############################################################################################################################################
# QT Text Log Helper
#
# log_segments:  split decoded console text into separately appendable line segments
# QTextLog:      read only text view that appends console text and status messages
#
# Console text from the drive may contain simple markup (e.g. <font color="red">). Each line segment is inserted as HTML, line
# breaks are inserted as plain newlines because QTextEdit drops trailing <br/> when HTML is appended.
#
# This code is maintained by the Servoterm developers
############################################################################################################################################

# ==============================================================================
# Configuration
# ==============================================================================
from config import MAX_TEXT_LINES, STATUS_COLOR, BACKGROUNDCOLOR_LOG
# ==============================================================================
# Imports
# ==============================================================================
from typing import List, Tuple
#
# QT Libraries
# ----------------------------------------
try:
    from PyQt6.QtCore       import pyqtSlot
    from PyQt6.QtGui        import QTextCursor
    from PyQt6.QtWidgets    import QTextEdit
    CursorEnd = QTextCursor.MoveOperation.End
except Exception:
    from PyQt5.QtCore       import pyqtSlot
    from PyQt5.QtGui        import QTextCursor
    from PyQt5.QtWidgets    import QTextEdit
    CursorEnd = QTextCursor.End

# ==============================================================================
# Line segmentation
# ==============================================================================

def log_segments(text: str) -> List[Tuple[bool, str]]:
    """
    Split text into (newline_before, segment) pairs.

    Empty lines and consecutive newlines give empty segments, a final line
    without newline is kept. Empty text gives no segments.

        "a\\n\\nb" -> [(False, "a"), (True, ""), (True, "b")]
        "ok\\n"   -> [(False, "ok"), (True, "")]
    """
    if not text:
        return []
    return [(i > 0, line) for i, line in enumerate(text.split("\n"))]

############################################################################################################################################
# Text Log Widget
############################################################################################################################################

class QTextLog(QTextEdit):
    """
    Console output of the drive.

    Slots
        on_receivedText(str)     append console text
        appendStatus(str)        append a colored status line (connected, disconnected)
        clear()                  inherited
    """

    def __init__(self, parent=None, maxlines: int = MAX_TEXT_LINES):
        super().__init__(parent)
        self.setReadOnly(True)
        self.setStyleSheet(f"background-color: {BACKGROUNDCOLOR_LOG};")
        self.document().setMaximumBlockCount(maxlines)                        # oldest lines drop out

    @pyqtSlot(str)
    def on_receivedText(self, text: str) -> None:
        for newline_before, segment in log_segments(text):
            self.moveCursor(CursorEnd)
            if newline_before:
                self.insertPlainText("\n")
                self.moveCursor(CursorEnd)
            if segment:
                self.insertHtml(segment)
                self.moveCursor(CursorEnd)
        self.ensureCursorVisible()

    @pyqtSlot(str)
    def appendStatus(self, message: str) -> None:
        self.append(f'<font color="{STATUS_COLOR}">{message}</font><br/>')
        self.moveCursor(CursorEnd)
