"""Terminal-safe text output and environment-gated debug logging.

Debug output is enabled by setting INSPECTOR_DEBUG to anything but "0".
"""
import codecs
import json
import locale
import sys
from typing import Any, Optional

from ..config import get_config


# Unicode glyphs used in our output and their ASCII fallbacks
ICON_MAP = {
    '✓': '[OK]',
    '✗': '[FAIL]',
    '⚠': '[WARN]',
    '→': '->',
    '│': '|',
    '─': '-',
    '…': '...',
    '•': '*',
}


def detect_terminal_encoding() -> str:
    """Detect the encoding of stdout, falling back to the locale and then ASCII."""
    encoding = getattr(sys.stdout, 'encoding', None)
    if not encoding:
        encoding = locale.getpreferredencoding(False) or 'ascii'

    try:
        return codecs.lookup(encoding).name
    except LookupError:
        return 'ascii'


def is_utf8_capable() -> bool:
    """Check if the terminal can print arbitrary Unicode."""
    return detect_terminal_encoding() == 'utf-8'


def sanitize_for_terminal(text: str, encoding: Optional[str] = None) -> str:
    """Replace characters the terminal cannot encode.

    Known glyphs get their ASCII equivalent from ICON_MAP; anything else
    unencodable becomes '?'.

    Args:
        text: Text potentially containing Unicode glyphs
        encoding: Target encoding (defaults to the detected terminal encoding)

    Returns:
        Text safe to write to the terminal
    """
    try:
        encoding = codecs.lookup(encoding or detect_terminal_encoding()).name
    except LookupError:
        encoding = 'ascii'
    if encoding == 'utf-8':
        return text

    for glyph, ascii_replacement in ICON_MAP.items():
        if glyph in text:
            text = text.replace(glyph, ascii_replacement)
    return text.encode(encoding, errors='replace').decode(encoding)


def debug(label: str, data: Any) -> None:
    """Print a labelled debug line when INSPECTOR_DEBUG is enabled.

    Args:
        label: Short tag, e.g. "request"
        data: bytes, str or any JSON-serializable value
    """
    if not get_config().debug:
        return

    if isinstance(data, bytes):
        text = data.decode('utf-8', errors='replace')
    elif isinstance(data, str):
        text = data
    else:
        text = json.dumps(data, default=str)

    print(sanitize_for_terminal(f"{label}: {text}"), file=sys.stderr)
