from __future__ import annotations
import logging

from .settings import settings
from .store import ResultCache

logger = logging.getLogger(__name__)


def purge_stale_results(cache: ResultCache, max_age_seconds: int | None = None) -> int:
	# Practice sessions themselves are never deleted; only unread handoffs expire
	max_age = settings.result_cache_ttl_seconds if max_age_seconds is None else max_age_seconds
	removed = cache.purge_older_than(max_age)
	if removed:
		logger.info("Purged %d unread evaluation handoffs", removed)
	return removed
