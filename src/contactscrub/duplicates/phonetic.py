"""Soundex-style phonetic codes for single name components."""

from __future__ import annotations

from unidecode import unidecode

CODE_LENGTH = 4

# Sentinel for empty / letter-less input.  Never counts as a match.
EMPTY_CODE = ""

_CLASSES: dict[str, str] = {
    **dict.fromkeys("BFPV", "1"),
    **dict.fromkeys("CGJKQSXZ", "2"),
    **dict.fromkeys("DT", "3"),
    "L": "4",
    **dict.fromkeys("MN", "5"),
    "R": "6",
}

# H and W are skipped without separating same-class letters; vowels (and Y)
# separate them, so "Tymczak" codes the C and Z but "Ashcraft" does not.
_TRANSPARENT = frozenset("HW")


def phonetic_code(token: str) -> str:
    """Return the 4-character Soundex code for *token* (e.g. ``Robert`` -> ``R163``).

    Non-letters are removed after ASCII transliteration, so ``O'Brien`` and
    ``Mary Ann`` are coded as one word.  Input with no letters at all yields
    ``EMPTY_CODE``.
    """
    letters = [c for c in unidecode(token or "").upper() if "A" <= c <= "Z"]
    if not letters:
        return EMPTY_CODE

    first = letters[0]
    code = first
    previous = _CLASSES.get(first, "")
    for char in letters[1:]:
        if char in _TRANSPARENT:
            continue
        digit = _CLASSES.get(char, "")
        if not digit:
            previous = ""
            continue
        if digit != previous:
            code += digit
            if len(code) == CODE_LENGTH:
                break
        previous = digit

    return code.ljust(CODE_LENGTH, "0")


def codes_match(code_a: str, code_b: str) -> bool:
    """Equality that never treats two empty sentinels as a match."""
    return code_a != EMPTY_CODE and code_a == code_b
