"""Request pipeline: split, extract, search, resolve and update the cart."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .cart import Order, OrderStore
from .catalog import CatalogProvider, Product
from .config import ResolverConfig, SearchConfig
from .entities import (
    ADD_TO_CART,
    ASK_INFO,
    ASK_PRICE,
    FINALIZE_ORDER,
    GREET,
    MODIFY_ORDER,
    ExtractedEntities,
    classify_intent,
    extract_entities,
    parse_selection,
)
from .reranker import LLMReranker
from .resolver import (
    AmbiguityResolver,
    ClarificationStore,
    Match,
    NeedsClarification,
    NotFound,
    PendingClarification,
    Resolved,
    build_clarification_message,
    format_price,
    is_cancellation,
    match_reply,
)
from .search import SearchEngine, SearchResult
from .splitter import split_requests
from .text import singularize_text

if TYPE_CHECKING:
    from .config import PedidosConfig

logger = logging.getLogger(__name__)

# Intents that only look products up and leave the cart alone
_LOOKUP_INTENTS = (ASK_PRICE, ASK_INFO)


@dataclass
class ProcessResult:
    intent: str
    matches: list[Match] = field(default_factory=list)
    not_found: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    needs_clarification: bool = False
    options: list[Product] = field(default_factory=list)
    message: str = ""
    order: Order | None = None


class OrderPipeline:
    """Entry point used by the conversational layer.

    Catalog, carts and pending questions are injected so the host decides
    their lifetime. Each request reads one catalog snapshot.
    """

    def __init__(
        self,
        catalog: CatalogProvider,
        orders: OrderStore | None = None,
        clarifications: ClarificationStore | None = None,
        search_engine: SearchEngine | None = None,
        resolver: AmbiguityResolver | None = None,
        search_settings: SearchConfig | None = None,
    ) -> None:
        self.catalog = catalog
        self.orders = orders or OrderStore()
        self.clarifications = clarifications or ClarificationStore()
        self.search_engine = search_engine or SearchEngine()
        self.resolver = resolver or AmbiguityResolver()
        self.search_settings = search_settings or SearchConfig()

    def search(self, query: str) -> list[SearchResult]:
        s = self.search_settings
        return self.search_engine.search(
            query,
            self._snapshot(),
            max_results=s.max_results,
            min_score=s.min_score,
            include_category=s.include_category,
        )

    async def process_request(self, utterance: str, customer_id: str) -> ProcessResult:
        """Handle one customer message end to end."""
        if self.clarifications.has_pending(customer_id) and (
            parse_selection(utterance) is not None or is_cancellation(utterance)
        ):
            return await self.resolve_clarification(customer_id, utterance)

        classified = classify_intent(utterance)
        intent = classified.intent
        logger.info("%s: intencion %s (%.2f)", customer_id, intent, classified.confidence)

        if intent == GREET:
            return ProcessResult(intent, message="¡Hola! ¿Qué productos necesitas?")
        if intent == FINALIZE_ORDER:
            return self._finalize(customer_id)
        if intent == MODIFY_ORDER:
            return self._modify(customer_id, classified.entities)

        products = self._snapshot()
        result = ProcessResult(intent)
        for segment in split_requests(utterance):
            entities = extract_entities(segment)
            query = entities.product or segment
            candidates = self._candidates(query, products)
            if not candidates:
                singular = singularize_text(query)
                if singular != query:
                    logger.debug("reintento en singular: %r -> %r", query, singular)
                    candidates = self._candidates(singular, products)

            resolution = await self.resolver.resolve(segment, candidates, entities)
            match resolution:
                case Resolved(match=m):
                    result.matches.append(m)
                case NotFound(query=q):
                    result.not_found.append(q)
                case NeedsClarification(options=options):
                    self.clarifications.push(
                        customer_id,
                        PendingClarification(
                            segment=segment,
                            utterance=utterance,
                            options=options,
                            quantity=entities.quantity,
                            unit=entities.unit,
                            intent=intent,
                        ),
                    )

        if intent not in _LOOKUP_INTENTS:
            for m in result.matches:
                self.orders.add_item(customer_id, m.product, m.quantity)

        self._attach_pending(result, customer_id)
        result.order = self.orders.get_order(customer_id)
        result.message = _summary(result, added=intent not in _LOOKUP_INTENTS)
        return result

    async def resolve_clarification(self, customer_id: str, reply: str) -> ProcessResult:
        """Apply the customer's answer to the oldest pending question."""
        pending = self.clarifications.peek(customer_id)
        if pending is None:
            return ProcessResult(ADD_TO_CART, message="No hay preguntas pendientes.")

        if is_cancellation(reply):
            self.clarifications.pop(customer_id)
            result = ProcessResult(ADD_TO_CART, message=f"Listo, omití \"{pending.segment}\".")
            self._attach_pending(result, customer_id)
            result.order = self.orders.get_order(customer_id)
            if result.needs_clarification:
                result.message += "\n\n" + build_clarification_message(result.options)
            return result

        product = match_reply(reply, pending.options)
        if product is None:
            return ProcessResult(
                ADD_TO_CART,
                needs_clarification=True,
                options=list(pending.options),
                message="No entendí tu elección.\n\n"
                + build_clarification_message(pending.options),
                order=self.orders.get_order(customer_id),
            )

        self.clarifications.pop(customer_id)
        entities = ExtractedEntities(quantity=pending.quantity, unit=pending.unit)
        quantity = await self.resolver.resolve_quantity(pending.segment, product, entities)
        adds = pending.intent not in _LOOKUP_INTENTS
        if adds:
            self.orders.add_item(customer_id, product, quantity)

        result = ProcessResult(
            pending.intent, matches=[Match(product, quantity, 1.0, auto_selected=False)]
        )
        self._attach_pending(result, customer_id)
        result.order = self.orders.get_order(customer_id)
        result.message = _summary(result, added=adds)
        return result

    def _snapshot(self) -> tuple[Product, ...]:
        """Current products, reloading the source first when it is too old."""
        try:
            self.catalog.refresh_if_stale()
        except (FileNotFoundError, ValueError):
            logger.exception("No se pudo recargar el catalogo, se usa el anterior")
        return self.catalog.get_products()

    def _candidates(self, query: str, products) -> list[Product]:
        s: ResolverConfig = self.resolver.settings
        results = self.search_engine.search(
            query,
            products,
            max_results=s.candidate_max_results,
            min_score=s.candidate_min_score,
        )
        return [r.product for r in results]

    def _attach_pending(self, result: ProcessResult, customer_id: str) -> None:
        pending = self.clarifications.peek(customer_id)
        if pending is not None:
            result.needs_clarification = True
            result.options = list(pending.options)

    def _modify(self, customer_id: str, entities: ExtractedEntities) -> ProcessResult:
        order = self.orders.get_order(customer_id)
        if order is None or order.is_empty:
            return ProcessResult(MODIFY_ORDER, message="Tu carrito está vacío.", order=order)
        if not entities.product:
            return ProcessResult(
                MODIFY_ORDER, message="¿Qué producto quieres quitar?", order=order
            )

        in_cart = [item.product for item in order.items]
        results = self.search_engine.search(entities.product, in_cart, max_results=1, min_score=0.5)
        if not results:
            results = self.search_engine.search(
                singularize_text(entities.product), in_cart, max_results=1, min_score=0.5
            )
        if not results:
            return ProcessResult(
                MODIFY_ORDER,
                not_found=[entities.product],
                message=f"No encontré \"{entities.product}\" en tu carrito.",
                order=order,
            )

        description = results[0].product.description
        order = self.orders.remove_item(customer_id, description)
        return ProcessResult(
            MODIFY_ORDER,
            removed=[description],
            message=f"Quité {description} del carrito.",
            order=order,
        )

    def _finalize(self, customer_id: str) -> ProcessResult:
        order = self.orders.get_order(customer_id)
        if order is None or order.is_empty:
            return ProcessResult(FINALIZE_ORDER, message="Tu carrito está vacío.", order=order)
        return ProcessResult(
            FINALIZE_ORDER,
            message=f"Total del pedido: ${format_price(order.total)}",
            order=order,
        )


def build_pipeline(
    config: PedidosConfig, catalog_path: str | Path | None = None
) -> OrderPipeline:
    """Wire a pipeline from configuration and load the catalog once.

    A catalog that fails to load leaves the pipeline with an empty
    catalog; every request then reports "not found".
    """
    provider = CatalogProvider(
        path=catalog_path or config.catalog.path,
        max_age_seconds=config.catalog.max_age_seconds,
    )
    try:
        provider.reload()
    except (FileNotFoundError, ValueError):
        logger.exception("No se pudo cargar el catalogo")

    resolver = AmbiguityResolver(
        reranker=LLMReranker.from_config(config),
        settings=config.resolver,
    )
    return OrderPipeline(
        catalog=provider,
        resolver=resolver,
        search_settings=config.search,
    )


def _summary(result: ProcessResult, added: bool) -> str:
    lines: list[str] = []
    for m in result.matches:
        price = format_price(m.product.price)
        if added:
            lines.append(f"Agregado: {m.quantity} x {m.product.description} (${price})")
        else:
            lines.append(f"{m.product.description}: ${price}")
    for query in result.not_found:
        lines.append(f"No encontré: {query}")
    if result.needs_clarification:
        if lines:
            lines.append("")
        lines.append(build_clarification_message(result.options))
    return "\n".join(lines)
