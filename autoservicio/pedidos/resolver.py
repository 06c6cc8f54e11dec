"""Turn a candidate list into one product, or a question for the customer."""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass

from .cart import MAX_QUANTITY
from .catalog import Product
from .config import ResolverConfig
from .entities import (
    ADD_TO_CART,
    ExtractedEntities,
    extract_entities,
    is_vague_quantity,
    parse_selection,
)
from .reranker import LLMReranker
from .text import normalize
from .units import convert_to_product_quantity, extract_size, matches_unit, unit_family

logger = logging.getLogger(__name__)

SINGLE_MATCH_CONFIDENCE = 0.95
LLM_MATCH_CONFIDENCE = 0.90
HEURISTIC_MATCH_CONFIDENCE = 0.85

# Leading word only: "arroz y nada mas" is an order
_CANCEL = re.compile(r"^(nada|ninguno|ninguna|cancelar|cancela|olvidalo|no gracias)\b")


@dataclass
class Match:
    product: Product
    quantity: int
    confidence: float
    auto_selected: bool


@dataclass
class Resolved:
    match: Match


@dataclass
class NotFound:
    query: str


@dataclass
class NeedsClarification:
    options: list[Product]
    message: str


Resolution = Resolved | NotFound | NeedsClarification


@dataclass
class PendingClarification:
    """A question waiting for the customer's answer."""

    segment: str
    utterance: str
    options: list[Product]
    quantity: float | None = None
    unit: str | None = None
    intent: str = ADD_TO_CART


class ClarificationStore:
    """Pending clarifications per customer, answered in FIFO order."""

    def __init__(self) -> None:
        self._pending: dict[str, deque[PendingClarification]] = {}

    def push(self, customer_id: str, pending: PendingClarification) -> None:
        self._pending.setdefault(customer_id, deque()).append(pending)

    def peek(self, customer_id: str) -> PendingClarification | None:
        queue = self._pending.get(customer_id)
        return queue[0] if queue else None

    def pop(self, customer_id: str) -> PendingClarification | None:
        queue = self._pending.get(customer_id)
        if not queue:
            return None
        pending = queue.popleft()
        if not queue:
            del self._pending[customer_id]
        return pending

    def has_pending(self, customer_id: str) -> bool:
        return bool(self._pending.get(customer_id))

    def count(self, customer_id: str) -> int:
        return len(self._pending.get(customer_id, ()))

    def clear(self, customer_id: str) -> None:
        self._pending.pop(customer_id, None)


class AmbiguityResolver:
    """Pick a product from search candidates with as few questions as possible.

    * 0 candidates: not found.
    * 1 candidate: taken as is.
    * 2 to ``max_auto_candidates``: chosen automatically, by the LLM when the
      choice looks hard (see :meth:`needs_user_choice`), otherwise by
      smallest package.
    * more: the customer picks among the first ``clarification_options``.
    """

    def __init__(
        self,
        reranker: LLMReranker | None = None,
        settings: ResolverConfig | None = None,
    ) -> None:
        self._reranker = reranker
        self.settings = settings or ResolverConfig()

    async def resolve(
        self,
        utterance: str,
        candidates: Sequence[Product],
        entities: ExtractedEntities | None = None,
    ) -> Resolution:
        if entities is None:
            entities = extract_entities(utterance)
        narrowed = narrow_candidates(candidates, entities)

        if not narrowed:
            return NotFound(entities.product or utterance)

        if len(narrowed) == 1:
            product = narrowed[0]
            quantity = await self.resolve_quantity(utterance, product, entities)
            return Resolved(Match(product, quantity, SINGLE_MATCH_CONFIDENCE, False))

        if len(narrowed) <= self.settings.max_auto_candidates:
            if self.needs_user_choice(narrowed) and self._reranker is not None:
                index = await self._reranker.rerank(utterance, narrowed)
                if index is not None:
                    product = narrowed[index]
                    quantity = await self.resolve_quantity(utterance, product, entities)
                    return Resolved(Match(product, quantity, LLM_MATCH_CONFIDENCE, True))
            product = select_smallest_or_cheapest(narrowed)
            logger.debug("seleccion automatica: %s", product.description)
            quantity = await self.resolve_quantity(utterance, product, entities)
            return Resolved(Match(product, quantity, HEURISTIC_MATCH_CONFIDENCE, True))

        options = list(narrowed[: self.settings.clarification_options])
        return NeedsClarification(options, build_clarification_message(options))

    def needs_user_choice(self, candidates: Sequence[Product]) -> bool:
        """True when there are many candidates with a wide price spread."""
        if len(candidates) < self.settings.min_candidates_for_choice:
            return False
        prices = [p.price for p in candidates]
        low, high = min(prices), max(prices)
        if low <= 0:
            return False
        return high / low > self.settings.price_ratio_threshold

    async def resolve_quantity(
        self, utterance: str, product: Product, entities: ExtractedEntities
    ) -> int:
        """Number of packages of ``product`` the request asks for."""
        if (
            is_vague_quantity(utterance)
            and self._reranker is not None
            and self._reranker.available
        ):
            return await self._reranker.interpret_quantity(utterance, product)
        if entities.quantity is None:
            return 1
        quantity = convert_to_product_quantity(
            entities.quantity, entities.unit, product.description
        )
        if quantity > MAX_QUANTITY:
            logger.warning("cantidad %d limitada a %d", quantity, MAX_QUANTITY)
            return MAX_QUANTITY
        return quantity


def narrow_candidates(
    candidates: Sequence[Product], entities: ExtractedEntities
) -> list[Product]:
    """Apply brand, unit and price filters. A filter that empties the list is skipped."""
    result = list(candidates)

    if entities.brand:
        brand = normalize(entities.brand)
        result = _keep_if_any(
            result,
            lambda p: brand in normalize(p.brand) or brand in normalize(p.description),
        )

    if unit_family(entities.unit):
        unit = entities.unit or ""
        result = _keep_if_any(result, lambda p: matches_unit(p.description, unit))

    if entities.price_range is not None:
        price_range = entities.price_range
        result = _keep_if_any(result, lambda p: price_range.contains(p.price))

    return result


def select_smallest_or_cheapest(candidates: Sequence[Product]) -> Product:
    """Smallest printed package wins; without any size, the lowest price.

    Ties keep catalog order.
    """
    if not candidates:
        raise ValueError("candidates must not be empty")
    sized = [(extract_size(p.description), i, p) for i, p in enumerate(candidates)]
    with_size = [s for s in sized if s[0] > 0]
    if with_size:
        return min(with_size, key=lambda s: (s[0], s[1]))[2]
    return min(enumerate(candidates), key=lambda ip: (ip[1].price, ip[0]))[1]


def build_clarification_message(options: Sequence[Product]) -> str:
    lines = ["¿Cuál prefieres?", ""]
    for i, product in enumerate(options, start=1):
        lines.append(f"{i}. {product.description}")
        price = f"   ${format_price(product.price)}"
        if product.brand:
            price += f" - {product.brand}"
        lines.append(price)
        lines.append("")
    return "\n".join(lines).strip()


def format_price(price: float) -> str:
    """Colombian style: 12500 -> "12.500"."""
    return f"{price:,.0f}".replace(",", ".")


def is_cancellation(reply: str) -> bool:
    return bool(_CANCEL.match(normalize(reply)))


def match_reply(reply: str, options: Sequence[Product]) -> Product | None:
    """Map a clarification reply to one of the offered options.

    Accepts a number or ordinal ("2", "la segunda") or a literal piece
    of the description ("diana 1kg").
    """
    index = parse_selection(reply)
    if index is not None:
        return options[index] if index < len(options) else None

    text = normalize(reply)
    if len(text) < 3:
        return None
    for product in options:
        if text in normalize(product.description):
            return product
    return None


def _keep_if_any(products: list[Product], predicate) -> list[Product]:
    kept = [p for p in products if predicate(p)]
    return kept or products
