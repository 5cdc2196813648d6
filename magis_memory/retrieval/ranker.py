"""
Result ranking: threshold filtering, ordering and truncation.
"""

from magis_memory.config import SearchConfig
from magis_memory.retrieval.scorer import ScoredResult


class ResultRanker:
    """
    Filters and orders scored results.

    Sorting is stable, so ties keep the store's newest-first order.
    """

    def __init__(self, config: SearchConfig | None = None):
        self.config = config or SearchConfig()

    def rank(
        self,
        results: list[ScoredResult],
        threshold: float | None = None,
        limit: int | None = None,
    ) -> list[ScoredResult]:
        """
        Keep results scoring at least ``threshold``, best first, at most ``limit``.

        Args:
            results: Scored candidates in store order
            threshold: Minimum final score (defaults to config)
            limit: Maximum results (defaults to config, capped at max_limit)

        Returns:
            Ranked results; empty when nothing qualifies
        """
        if threshold is None:
            threshold = self.config.default_threshold
        if limit is None:
            limit = self.config.default_limit
        limit = max(0, min(limit, self.config.max_limit))

        eligible = [r for r in results if r.final_score >= threshold]
        eligible.sort(key=lambda r: r.final_score, reverse=True)
        return eligible[:limit]
