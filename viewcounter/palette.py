"""Color palette loaded from a line-delimited resource.

Each non-blank line of the source holds one color token. Hex tokens are
normalized to a leading ``#``, lowercase and full length (``4c1`` becomes
``#44cc11``); bare CSS color names are kept
as-is. Lines starting with ``//`` or ``;`` are comments.
"""
from __future__ import annotations

import logging
import os
import random
import re
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from viewcounter.exceptions import EmptyPalette

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{4}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")
_NAME_RE = re.compile(r"^[a-zA-Z]+$")
_COMMENT_PREFIXES = ("//", ";")


def parse_color(token: str) -> Optional[str]:
    """Return the normalized color for ``token`` or None if it is not a color."""
    token = token.strip()
    m = _HEX_RE.match(token)
    if m:
        digits = m.group(1).lower()
        if len(digits) <= 4:
            # shorthand: #rgb -> #rrggbb, #rgba -> #rrggbbaa
            digits = "".join(ch * 2 for ch in digits)
        return "#" + digits
    if _NAME_RE.match(token):
        return token.lower()
    return None


class Palette:
    """Ordered, immutable sequence of colors. Indices wrap modulo its length."""

    def __init__(self, colors: Sequence[str], source: str = "<memory>"):
        if not colors:
            raise EmptyPalette(f"Palette {source} has no usable colors", source=source)
        self._colors: Tuple[str, ...] = tuple(colors)
        self.source = source

    @classmethod
    def from_lines(cls, lines: Iterable[str], source: str = "<memory>") -> "Palette":
        colors: List[str] = []
        rejected = 0
        for lineno, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line or line.startswith(_COMMENT_PREFIXES):
                continue
            color = parse_color(line)
            if color is None:
                rejected += 1
                logger.warning(f"Skipping invalid color {line!r} at {source}:{lineno}")
                continue
            colors.append(color)
        if not colors:
            raise EmptyPalette(
                f"Palette {source} has no usable colors ({rejected} invalid lines)",
                source=source,
                rejected=rejected,
            )
        logger.debug(f"Loaded {len(colors)} colors from {source}")
        return cls(colors, source=source)

    @classmethod
    def load(cls, source: Union[str, "os.PathLike[str]", Iterable[str]]) -> "Palette":
        """Load a palette from a file path or an iterable of lines (e.g. an open file).

        Raises:
            EmptyPalette: the source holds no usable colors or cannot be read
        """
        if isinstance(source, (str, os.PathLike)):
            path = os.fspath(source)
            try:
                with open(path, "r", encoding="utf-8") as fh:
                    return cls.from_lines(fh, source=path)
            except OSError as e:
                raise EmptyPalette(f"Cannot read palette {path}: {e}", source=path) from e
        name = getattr(source, "name", "<stream>")
        return cls.from_lines(source, source=str(name))

    @property
    def colors(self) -> Tuple[str, ...]:
        return self._colors

    def __len__(self) -> int:
        return len(self._colors)

    def __iter__(self):
        return iter(self._colors)

    def __repr__(self) -> str:
        return f"Palette({len(self._colors)} colors from {self.source})"

    def color_for(self, index: int) -> str:
        """Color at ``index`` modulo the palette length."""
        return self._colors[index % len(self._colors)]

    def color_for_count(self, count: int, max_views: int) -> str:
        """Milestone color: linear interpolation of ``count`` across the palette.

        Counts at or beyond ``max_views`` map to the last color.
        """
        if max_views <= 0 or len(self._colors) == 1:
            return self._colors[-1]
        views = min(max(count, 0), max_views)
        idx = views * (len(self._colors) - 1) // max_views
        return self._colors[idx]

    def random_color(self, rng: Optional[random.Random] = None) -> str:
        rng = rng or random
        return self._colors[rng.randrange(len(self._colors))]
