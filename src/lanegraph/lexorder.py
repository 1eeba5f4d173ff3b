"""Lexicographic sort keys for ordering siblings under a parent.

Keys use the printable ASCII characters ``!`` through ``~``. A generated
key never ends in ``!``, so there is always room to insert before it.
"""

from __future__ import annotations

_MIN = 0x21  # "!"
_MAX = 0x7E  # "~"


def lexical_midpoint(before: str | None, after: str | None) -> str:
    """Return a key that sorts strictly between ``before`` and ``after``.

    ``None`` means unbounded on that side. Bounds that are out of order are
    treated as if ``after`` were unbounded. Raises ``ValueError`` when no
    key over the alphabet fits, e.g. between ``"a"`` and ``"a!"``.
    """
    low = before or ""
    high = after
    if high is not None and low >= high:
        high = None

    out: list[str] = []
    i = 0
    while True:
        low_done = i >= len(low)
        # An exhausted lower bound sorts below every character of the alphabet.
        ca = _MIN - 1 if low_done else ord(low[i])
        if high is None:
            cb = _MAX + 1
        elif i < len(high):
            cb = ord(high[i])
        else:
            # ``out`` has become ``after`` itself.
            raise ValueError(f"no sort key fits between {before!r} and {after!r}")

        if low_done and cb <= _MIN:
            if cb < _MIN:
                raise ValueError(f"no sort key fits between {before!r} and {after!r}")
            # Follow ``after`` down through its "!" characters.
            out.append(chr(_MIN))
            i += 1
            continue
        if ca == cb:
            out.append(chr(ca))
            i += 1
            continue

        mid = (ca + cb) // 2
        if mid > ca and mid > _MIN:
            out.append(chr(mid))
            return "".join(out)
        # No usable character in between: extend the lower side and open the upper bound.
        out.append(chr(_MIN) if low_done else chr(ca))
        high = None
        i += 1
