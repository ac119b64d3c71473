"""
Source fingerprinting for change detection.

Procedure bodies are compared by digest after all whitespace is removed, so a
round trip through the server that re-indents or re-wraps the source does not
register as a change.
"""

import base64
import hashlib
import re

from pgproxy.constants import BODY_MARKER

_WHITESPACE = re.compile(r"\s")


def normalize(text: str) -> str:
    """Remove every whitespace character from the text."""
    return _WHITESPACE.sub("", text)


def digest(text: str) -> str:
    """Return the base64 encoded SHA-1 digest of the normalized text."""
    sha = hashlib.sha1(normalize(text).encode("utf-8"))
    return base64.b64encode(sha.digest()).decode("ascii")


def extract_body(text: str) -> str:
    """Return the substring between the first and second body marker.

    Text holding fewer than two markers is returned unchanged, which is the
    shape of a body read back from the catalog.
    """
    start = text.find(BODY_MARKER)
    if start < 0:
        return text
    start += len(BODY_MARKER)
    end = text.find(BODY_MARKER, start)
    if end < 0:
        return text
    return text[start:end]


def fingerprint_body(text: str) -> str:
    """Digest of the body-only part of a procedure definition."""
    return digest(extract_body(text))
