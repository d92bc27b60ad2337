"""
Utilities for turning raw token bytes into displayable strings.
"""

import unicodedata


def render_bytes(b: bytes) -> str:
    """
    Render token bytes for listings, one line per token.

    Valid UTF-8 is shown as text with control characters escaped as ``\\uXXXX``.
    Bytes that do not decode, such as the halves of a split character, are
    shown as ``\\xNN``.
    """
    out: list[str] = []
    # undecodable bytes come back as lone surrogates U+DC80..U+DCFF
    for c in b.decode("utf-8", errors="surrogateescape"):
        cp = ord(c)
        if 0xDC80 <= cp <= 0xDCFF:
            out.append(f"\\x{cp - 0xDC00:02x}")
        # control category codes vary (Cc, Cf, Cn ...) so check the first letter
        elif unicodedata.category(c)[0] == "C":
            out.append(f"\\u{cp:04x}")
        else:
            out.append(c)
    return "".join(out)


def token_text(b: bytes) -> str:
    """Decode token bytes for display without escaping, replacing partial UTF-8."""
    return b.decode("utf-8", errors="replace")
