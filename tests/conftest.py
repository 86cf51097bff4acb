import os
import sys

import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from helpers.Scope_helper import ScopeProtocol  # noqa: E402

PROTOCOLS = [
    ScopeProtocol(),                                                           # 8 x float32 little endian
    ScopeProtocol(channel_count=2),
    ScopeProtocol(channel_count=1, sample_format="d", byte_order=">"),
    ScopeProtocol(channel_count=3, sample_format="e"),
    ScopeProtocol(marker=0x00, kind_sample=0x10, kind_reset=0x11, channel_count=4),
    ScopeProtocol(marker=0x24, kind_sample=ord("S"), kind_reset=ord("R"), channel_count=2, byte_order=">"),
]


@pytest.fixture(params=PROTOCOLS, ids=lambda p: f"m{p.marker:02X}-{p.channel_count}{p.byte_order}{p.sample_format}")
def protocol(request):
    return request.param


@pytest.fixture
def two_channels():
    return ScopeProtocol(channel_count=2)


def sample_values(protocol, offset=0.0):
    """Distinct values exactly representable in every sample format."""
    return [offset + 0.5 * (i + 1) * (-1) ** i for i in range(protocol.channel_count)]


@pytest.fixture(scope="session")
def qapp():
    """One QApplication for all Qt tests, rendering offscreen."""
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    try:
        from PyQt6.QtWidgets import QApplication
    except ImportError:
        try:
            from PyQt5.QtWidgets import QApplication
        except ImportError:
            pytest.skip("no Qt binding")
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app
