"""Line-ending detection for manifest files."""

import re

_CRLF = re.compile(r"\r\n")
_LF = re.compile(r"(?<!\r)\n")


def detect_newline(content: str) -> str | None:
    """Detect the dominant line ending of a file.

    Args:
        content: The file content

    Returns:
        ``"\\r\\n"`` or ``"\\n"``, whichever occurs more often (ties go to
        ``"\\n"``), or None when the content has no line ending at all.
    """
    crlf = len(_CRLF.findall(content))
    lf = len(_LF.findall(content))

    if crlf == 0 and lf == 0:
        return None
    return "\r\n" if crlf > lf else "\n"


def normalize_newlines(text: str, newline: str) -> str:
    """Rewrite every line ending in ``text`` to ``newline``."""
    return re.sub(r"\r?\n", newline, text)
