"""Dean Edwards packer reversal (``eval(function(p,a,c,k,e,d){...})``).

Format::

    eval(function(p,a,c,k,e,d){...}('payload',radix,count,'kw0|kw1|...'.split('|'),0,{}))

The packer replaces every word of the source with its dictionary index
written in base ``radix`` (up to 62). Unpacking substitutes those
tokens back. This is a string transform only; the packed code is never
executed.
"""

from __future__ import annotations

import re
from collections.abc import Iterator

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
_MAX_RADIX = len(_ALPHABET)

_JS_STRING_SQ = r"'((?:[^'\\]|\\.)*)'"
_JS_STRING_DQ = r'"((?:[^"\\]|\\.)*)"'

# Ordered from strict to permissive; the first match wins.
_PACKED_PATTERNS: tuple[re.Pattern[str], ...] = (
    # eval(function(p,a,c,k,e,d){...return p}('payload',62,100,'a|b'.split('|'),0,{}))
    re.compile(
        r"eval\(function\(p,a,c,k,e,[dr]\)\{.*?return\s+p\}\s*\(\s*"
        + _JS_STRING_SQ
        + r"\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*"
        + _JS_STRING_SQ
        + r"\.split\('\|'\)",
        re.DOTALL,
    ),
    # Same shape, double-quoted payload and dictionary.
    re.compile(
        r"eval\(function\(p,a,c,k,e,[dr]\)\{.*?\}\s*\(\s*"
        + _JS_STRING_DQ
        + r"\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*"
        + _JS_STRING_DQ
        + r"\.split\(\"\|\"\)",
        re.DOTALL,
    ),
    # Renamed parameters / whitespace inside the function header.
    re.compile(
        r"eval\s*\(\s*function\s*\([^)]*\)\s*\{.*?\}\s*\(\s*"
        + _JS_STRING_SQ
        + r"\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*"
        + _JS_STRING_SQ
        + r"\s*\.split\(\s*['\"]\|['\"]\s*\)",
        re.DOTALL,
    ),
    # Bare argument tuple (eval wrapper stripped or aliased).
    re.compile(
        r"\}\s*\(\s*"
        + _JS_STRING_SQ
        + r"\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*"
        + _JS_STRING_SQ
        + r"\s*\.split\(\s*['\"]\|['\"]\s*\)",
        re.DOTALL,
    ),
)

# Any parameter names; blocks that turn out not to be packers unpack to "".
_PACKED_START_RE = re.compile(r"eval\s*\(\s*function\s*\([^)]*\)")

# Upper bound on how much text after an ``eval(function(...)``
# header is considered part of that block.
_BLOCK_WINDOW = 262_144

_WORD_RE = re.compile(r"\b\w+\b", re.ASCII)
_JS_ESCAPE_RE = re.compile(r"\\(['\"\\])")


def encode_base(num: int, radix: int) -> str:
    """Encode *num* the way the packer's ``e()`` function does."""
    if num < radix:
        return _ALPHABET[num]
    return encode_base(num // radix, radix) + _ALPHABET[num % radix]


def _unescape_js(value: str) -> str:
    return _JS_ESCAPE_RE.sub(r"\1", value)


def unpack(payload: str, radix: int, count: int, keywords: list[str]) -> str:
    """Rebuild source from an already-parsed ``(p, a, c, k)`` tuple.

    Returns ``""`` for parameters no real packer would produce.
    """
    if not payload or radix < 2 or radix > _MAX_RADIX or count < 1 or not keywords:
        return ""

    # Table is built high index to low like the packer's own while(c--)
    # loop. Substitution is one pass, so inserted keywords that look like
    # tokens ("1", "a") are never replaced a second time.
    table: dict[str, str] = {}
    for index in range(count - 1, -1, -1):
        if index < len(keywords) and keywords[index]:
            table[encode_base(index, radix)] = keywords[index]

    def _replace_word(m: re.Match[str]) -> str:
        word = m.group(0)
        return table.get(word, word)

    return _WORD_RE.sub(_replace_word, payload)


def deobfuscate_packed(code: str) -> str:
    """Unpack the first packer block found in *code*.

    Returns the reconstructed source, or ``""`` when *code* does not
    contain a structurally valid packed block.
    """
    if not code or "split" not in code:
        return ""
    for pattern in _PACKED_PATTERNS:
        m = pattern.search(code)
        if not m:
            continue
        payload, radix, count, dictionary = m.groups()
        try:
            radix_n = int(radix)
            count_n = int(count)
        except ValueError:
            return ""
        keywords = _unescape_js(dictionary).split("|")
        return unpack(_unescape_js(payload), radix_n, count_n, keywords)
    return ""


def find_packed_blocks(text: str) -> Iterator[str]:
    """Yield text windows that each start at a packer header."""
    starts = [m.start() for m in _PACKED_START_RE.finditer(text)]
    for i, start in enumerate(starts):
        end = starts[i + 1] if i + 1 < len(starts) else len(text)
        yield text[start : min(end, start + _BLOCK_WINDOW)]
