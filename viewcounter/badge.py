"""SVG badge template and renderer.

Templates mark substitution points with ``{{NAME}}`` placeholders. The set of
placeholders is validated once when the template is loaded, so a broken
template fails at startup instead of producing a broken badge per request.

Known placeholders:
    DIGITS       per-digit ``<tspan>`` glyphs, tinted from the palette but never in COLOR (required)
    COLOR        badge fill color (required)
    COUNT        the count as plain digits
    LABEL        "view" for a count of 1, "views" otherwise
    VALUE_WIDTH  width of the digits section
    TOTAL_WIDTH  full badge width
    VALUE_X      horizontal center of the digits section
"""
from __future__ import annotations

import logging
import os
import re
from typing import Dict, FrozenSet, Optional, Tuple

from viewcounter.constants import (
    DIGIT_FALLBACK_DARK, DIGIT_FALLBACK_LIGHT, DIGIT_WIDTH, LABEL_WIDTH, MAX_VIEWS_DEFAULT, VALUE_PADDING,
)
from viewcounter.exceptions import MalformedTemplate
from viewcounter.palette import Palette

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")
REQUIRED_PLACEHOLDERS: FrozenSet[str] = frozenset({"DIGITS", "COLOR"})
KNOWN_PLACEHOLDERS: FrozenSet[str] = REQUIRED_PLACEHOLDERS | frozenset(
    {"COUNT", "LABEL", "VALUE_WIDTH", "TOTAL_WIDTH", "VALUE_X"}
)


class Template:
    """Immutable SVG document split around its placeholders."""

    def __init__(self, text: str, source: str = "<memory>"):
        names = [m.group(1) for m in PLACEHOLDER_RE.finditer(text)]
        found = set(names)
        missing = REQUIRED_PLACEHOLDERS - found
        unknown = found - KNOWN_PLACEHOLDERS
        if missing or unknown:
            parts = []
            if missing:
                parts.append(f"missing {', '.join(sorted(missing))}")
            if unknown:
                parts.append(f"unknown {', '.join(sorted(unknown))}")
            raise MalformedTemplate(
                f"Template {source} is malformed: {'; '.join(parts)}",
                source=source,
                missing=missing,
                unknown=unknown,
            )
        # Alternating literal / placeholder-name chunks: [lit, name, lit, name, ..., lit]
        self._chunks: Tuple[str, ...] = tuple(PLACEHOLDER_RE.split(text))
        self.text = text
        self.source = source
        self.placeholders: FrozenSet[str] = frozenset(found)

    @classmethod
    def from_string(cls, text: str, source: str = "<memory>") -> "Template":
        return cls(text, source=source)

    @classmethod
    def load(cls, path: str) -> "Template":
        """Read and validate a template file.

        Raises:
            MalformedTemplate: the file cannot be read or fails placeholder validation
        """
        path = os.fspath(path)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                text = fh.read()
        except (OSError, UnicodeDecodeError) as e:
            raise MalformedTemplate(f"Cannot read template {path}: {e}", source=path, original_error=e) from e
        template = cls(text, source=path)
        logger.debug(f"Loaded template {path} with placeholders {sorted(template.placeholders)}")
        return template

    def substitute(self, values: Dict[str, str]) -> str:
        out = []
        for i, chunk in enumerate(self._chunks):
            # odd indices are placeholder names captured by PLACEHOLDER_RE
            out.append(values[chunk] if i % 2 else chunk)
        return "".join(out)


def count_digits(count: int) -> str:
    """Canonical base-10 digits of a non-negative count."""
    if isinstance(count, bool) or not isinstance(count, int):
        raise TypeError(f"count must be an int, got {type(count).__name__}")
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count}")
    return str(count)


class BadgeRenderer:
    """Renders counts into SVG bytes using a validated template and a palette.

    Rendering is a pure function of (template, palette, max_views, count, color).
    """

    def __init__(self, template: Template, palette: Palette, max_views: int = MAX_VIEWS_DEFAULT):
        self.template = template
        self.palette = palette
        self.max_views = max_views

    def digit_color(self, position: int, background: str) -> str:
        """Palette color for the digit at ``position``, never equal to ``background``.

        Steps forward through the palette past any entry matching the
        background; falls back to white/black when every entry matches.
        """
        bg = background.lower()
        for step in range(len(self.palette)):
            color = self.palette.color_for(position + step)
            if color.lower() != bg:
                return color
        return DIGIT_FALLBACK_DARK if bg == DIGIT_FALLBACK_LIGHT else DIGIT_FALLBACK_LIGHT

    def digit_glyphs(self, digits: str, background: str) -> str:
        return "".join(
            f'<tspan fill="{self.digit_color(pos, background)}">{d}</tspan>' for pos, d in enumerate(digits)
        )

    def values_for(self, count: int, color: Optional[str] = None) -> Dict[str, str]:
        digits = count_digits(count)
        color = color or self.palette.color_for_count(count, self.max_views)
        value_width = len(digits) * DIGIT_WIDTH + 2 * VALUE_PADDING
        return {
            "DIGITS": self.digit_glyphs(digits, color),
            "COLOR": color,
            "COUNT": digits,
            "LABEL": "view" if count == 1 else "views",
            "VALUE_WIDTH": str(value_width),
            "TOTAL_WIDTH": str(LABEL_WIDTH + value_width),
            "VALUE_X": str(LABEL_WIDTH + value_width // 2),
        }

    def render(self, count: int, color: Optional[str] = None) -> bytes:
        """Render ``count`` as a complete SVG document.

        Args:
            count: Non-negative view count
            color: Badge fill color; defaults to the milestone color for ``count``
        """
        return self.template.substitute(self.values_for(count, color)).encode("utf-8")
