import pytest

try:
    from helpers.Qtextlog_helper import log_segments
except ImportError:
    pytest.skip("no Qt binding", allow_module_level=True)


@pytest.mark.parametrize("text, segments", [
    ("", []),
    ("ok", [(False, "ok")]),
    ("ok\n", [(False, "ok"), (True, "")]),
    ("\n", [(False, ""), (True, "")]),
    ("a\n\nb", [(False, "a"), (True, ""), (True, "b")]),
    ("<b>x</b>\ny", [(False, "<b>x</b>"), (True, "y")]),
])
def test_log_segments(text, segments):
    assert log_segments(text) == segments


def test_segments_rebuild_the_text():
    text = "boot\n\nfault0.en = 1\npartial"
    rebuilt = "".join(("\n" if newline else "") + segment for newline, segment in log_segments(text))
    assert rebuilt == text
