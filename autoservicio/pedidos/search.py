"""Multi-strategy product search over an in-memory catalog."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein

from .catalog import Product
from .text import normalize

logger = logging.getLogger(__name__)

EXACT = "exact"
PARTIAL = "partial"
KEYWORD = "keyword"
FUZZY = "fuzzy"
CATEGORY = "category"

DEFAULT_MAX_RESULTS = 15
DEFAULT_MIN_SCORE = 0.3

# Fuzzy matching
FUZZY_WORD_SIMILARITY = 0.7
FUZZY_MIN_COVERAGE = 0.6
FUZZY_WEIGHT = 0.7


@dataclass(frozen=True)
class SearchResult:
    product: Product
    score: float
    match_type: str
    position: int = 0  # index in the catalog, breaks score ties


def levenshtein_similarity(a: str, b: str) -> float:
    """1 - edit_distance / max_len, in [0, 1]."""
    if not a and not b:
        return 1.0
    return Levenshtein.normalized_similarity(a, b)


class SearchEngine:
    """Score catalog entries against a query with five independent strategies.

    Results from every strategy are concatenated, deduplicated by product
    description (highest score wins), filtered by ``min_score``, sorted by
    descending score with catalog order breaking ties, and truncated.
    """

    def search(
        self,
        query: str,
        products: Sequence[Product],
        max_results: int = DEFAULT_MAX_RESULTS,
        min_score: float = DEFAULT_MIN_SCORE,
        include_category: bool = False,
    ) -> list[SearchResult]:
        term = normalize(query)
        if not term or not products:
            return []

        indexed = [(i, p, normalize(p.description)) for i, p in enumerate(products)]

        results: list[SearchResult] = []
        results.extend(self._exact(term, indexed))
        results.extend(self._partial(term, indexed))
        results.extend(self._keyword(term, indexed))
        results.extend(self._fuzzy(term, indexed))
        if include_category:
            results.extend(self._category(term, indexed))

        unique = _dedupe(results)
        ranked = sorted(
            (r for r in unique if r.score >= min_score),
            key=lambda r: (-r.score, r.position),
        )
        logger.debug("busqueda %r: %d resultados", term, len(ranked))
        return ranked[:max_results]

    def _exact(self, term, indexed) -> list[SearchResult]:
        return [
            SearchResult(product, 1.0, EXACT, i)
            for i, product, desc in indexed
            if desc == term
        ]

    def _partial(self, term, indexed) -> list[SearchResult]:
        """Every query word (len > 2) must appear in the description."""
        query_words = [w for w in term.split(" ") if len(w) > 2]
        if not query_words:
            return []

        results: list[SearchResult] = []
        for i, product, desc in indexed:
            product_words = desc.split(" ")
            relevance = 0.0
            matched = 0
            for q in query_words:
                if q in product_words:
                    matched += 1
                    relevance += 1.0
                elif len(q) > 3 and any(q in w for w in product_words):
                    matched += 1
                    relevance += 0.8
                else:
                    break
            if matched == len(query_words):
                score = min(0.85 + relevance / len(query_words) * 0.15, 0.95)
                results.append(SearchResult(product, score, PARTIAL, i))
        return results

    def _keyword(self, term, indexed) -> list[SearchResult]:
        results: list[SearchResult] = []
        for i, product, _ in indexed:
            if not product.keywords:
                continue
            matching = [
                kw for kw in (normalize(k) for k in product.keywords)
                if kw and (kw in term or term in kw)
            ]
            if matching:
                score = min(0.7 + len(matching) * 0.05, 0.85)
                results.append(SearchResult(product, score, KEYWORD, i))
        return results

    def _fuzzy(self, term, indexed) -> list[SearchResult]:
        """Tolerate typos: "arros diana" still finds "ARROZ DIANA 500G"."""
        query_words = [w for w in term.split(" ") if len(w) > 3]
        if not query_words:
            return []

        results: list[SearchResult] = []
        for i, product, desc in indexed:
            product_words = [w for w in desc.split(" ") if len(w) >= 3]
            if not product_words:
                continue
            similarities: list[float] = []
            for q in query_words:
                best = max(levenshtein_similarity(q, w) for w in product_words)
                if best > FUZZY_WORD_SIMILARITY:
                    similarities.append(best)
            if similarities and len(similarities) >= len(query_words) * FUZZY_MIN_COVERAGE:
                score = sum(similarities) / len(similarities) * FUZZY_WEIGHT
                results.append(SearchResult(product, score, FUZZY, i))
        return results

    def _category(self, term, indexed) -> list[SearchResult]:
        results: list[SearchResult] = []
        for i, product, _ in indexed:
            category = normalize(product.category)
            if category and (term in category or category in term):
                results.append(SearchResult(product, 0.5, CATEGORY, i))
        return results

    def get_suggestions(
        self, query: str, products: Sequence[Product], limit: int = 5
    ) -> list[str]:
        """Return description words that contain a short query.

        Used for partial input ("arr") where a full search is not useful.
        Words are returned as written in the catalog, not normalized.
        """
        if len(query.strip()) < 2:
            return []
        term = normalize(query)
        if not term:
            return []

        suggestions: list[str] = []
        for product in products:
            if term not in normalize(product.description):
                continue
            for word in product.description.split():
                if len(word) > 3 and term in normalize(word) and word not in suggestions:
                    suggestions.append(word)
                    if len(suggestions) >= limit:
                        return suggestions
        return suggestions

    def extract_categories(self, products: Sequence[Product]) -> list[str]:
        return sorted({p.category for p in products if p.category})

    def search_by_brand(self, brand: str, products: Sequence[Product]) -> list[Product]:
        term = normalize(brand)
        if not term:
            return []
        return [p for p in products if p.brand and term in normalize(p.brand)]

    def search_by_barcode(self, barcode: str, products: Sequence[Product]) -> Product | None:
        code = barcode.strip()
        if not code:
            return None
        for product in products:
            if product.barcode == code:
                return product
        return None


def _dedupe(results: list[SearchResult]) -> list[SearchResult]:
    """Keep one result per description, the one with the highest score."""
    best: dict[str, SearchResult] = {}
    for result in results:
        key = result.product.description
        existing = best.get(key)
        if existing is None or result.score > existing.score:
            best[key] = result
    return list(best.values())
