"""Badge service: counts a visit and renders the badge for it.

This is the single entry point the HTTP layer calls per request. Errors are
mapped to status codes here so the route handler stays thin.
"""
from __future__ import annotations

import logging
import random
from typing import Optional, Tuple

from viewcounter import metrics
from viewcounter.badge import BadgeRenderer, Template
from viewcounter.config import ConfigManager
from viewcounter.constants import FILL_MODE_MILESTONE, FILL_MODE_RANDOM, FILL_MODES
from viewcounter.counter_store import CounterStore
from viewcounter.exceptions import InvalidKey, StoreUnavailable
from viewcounter.palette import Palette

logger = logging.getLogger(__name__)


class BadgeService:
    """Owns the counter store and renderer for the lifetime of the process.

    Attributes:
        store: Open CounterStore shared by all requests
        renderer: BadgeRenderer built from the startup template and palette
    """

    def __init__(self, store: CounterStore, renderer: BadgeRenderer, rng: Optional[random.Random] = None):
        self.store = store
        self.renderer = renderer
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: ConfigManager) -> "BadgeService":
        """Load resources and open the store. Startup errors propagate.

        Raises:
            ConfigurationError, EmptyPalette, MalformedTemplate, StoreUnavailable
        """
        config.require_valid()
        palette = Palette.load(config.badge.get_palette_path())
        template = Template.load(config.badge.get_template_path())
        renderer = BadgeRenderer(template, palette, max_views=config.badge.max_views)
        store = CounterStore(config.store.get_data_dir(), timeout=config.store.timeout).open()
        logger.info(f"Badge service ready: {palette!r}, template {template.source}")
        return cls(store, renderer)

    def close(self) -> None:
        self.store.close()

    def badge_color(self, count: int, fill_mode: str) -> str:
        palette = self.renderer.palette
        if fill_mode == FILL_MODE_RANDOM:
            return palette.random_color(self._rng)
        return palette.color_for_count(count, self.renderer.max_views)

    def get_badge(self, profile_key: str, fill_mode: str = FILL_MODE_MILESTONE) -> Tuple[bytes, int]:
        """Increment ``profile_key`` and return ``(body, http_status)``.

        On success the body is the SVG document and the status 200. On failure
        the body is a short plain-text message; no partial SVG is returned.
        """
        if fill_mode not in FILL_MODES:
            metrics.inc("badge_invalid_request")
            return f"Unknown fill_mode {fill_mode!r}".encode("utf-8"), 400
        try:
            count = self.store.increment_and_get(profile_key)
        except InvalidKey as e:
            metrics.inc("badge_invalid_key")
            logger.debug(f"Rejected profile key {profile_key!r}: {e}")
            return str(e).encode("utf-8"), 400
        except StoreUnavailable as e:
            metrics.inc("store_errors")
            logger.warning(f"Store unavailable for {profile_key!r}: {e}")
            return f"Failed to calculate view count, try again: {e}".encode("utf-8"), 500

        # Template placeholders were validated at load; render cannot fail for a stored count.
        body = self.renderer.render(count, self.badge_color(count, fill_mode))
        metrics.inc("badge_served")
        return body, 200
