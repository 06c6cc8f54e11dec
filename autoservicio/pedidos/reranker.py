"""LLM-assisted choice between a handful of candidate products.

Every call is bounded by a timeout and every failure degrades to a typed
outcome; nothing here raises into the request path.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .cart import MAX_QUANTITY
from .catalog import Product
from .llm import GenerationBackend, create_backend

if TYPE_CHECKING:
    from .config import PedidosConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 8.0
DEFAULT_MAX_CANDIDATES = 15

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

_RERANK_PROMPT = """\
El cliente pidió: "{utterance}"

Productos disponibles:
{products}

Tarea: Elige EL MEJOR producto para el cliente. Considera:
- Relevancia al pedido
- Mejor precio/calidad
- Marca conocida vs genérica

Responde SOLO con JSON (sin markdown):
{{
  "selectedId": 0,
  "reason": "explicación breve"
}}
"""

_QUANTITY_PROMPT = """\
El cliente pidió: "{utterance}"
Producto: {product}

¿Cuántas unidades de este producto quiere el cliente?
Si la cantidad es vaga ("un poco", "algo de"), elige una cantidad razonable.

Responde SOLO con JSON (sin markdown):
{{
  "quantity": 1
}}
"""


@dataclass(frozen=True)
class Selection:
    index: int
    reason: str = ""


@dataclass(frozen=True)
class ParseFailure:
    raw: str


@dataclass(frozen=True)
class Timeout:
    seconds: float


@dataclass(frozen=True)
class Unavailable:
    reason: str


RerankOutcome = Selection | ParseFailure | Timeout | Unavailable


class FailureBreaker:
    """Open for ``cooldown_seconds`` once ``failure_threshold`` failures pile up."""

    def __init__(
        self,
        failure_threshold: int = 1,
        cooldown_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.failure_threshold = max(1, failure_threshold)
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._failures = 0
        self._open_until = 0.0

    def is_open(self) -> bool:
        return self._clock() < self._open_until

    def record_success(self) -> None:
        self._failures = 0
        self._open_until = 0.0

    def record_failure(self) -> None:
        self._failures += 1
        if self._failures >= self.failure_threshold:
            self._open_until = self._clock() + self.cooldown_seconds
            self._failures = 0
            logger.warning(
                "IA marcada como no disponible por %.0f s", self.cooldown_seconds
            )

    def info(self) -> dict:
        return {
            "failures": self._failures,
            "is_open": self.is_open(),
            "failure_threshold": self.failure_threshold,
            "cooldown_seconds": self.cooldown_seconds,
        }


class LLMReranker:
    """Ask a generation backend to pick one candidate for an utterance."""

    def __init__(
        self,
        backend: GenerationBackend | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
        breaker: FailureBreaker | None = None,
    ) -> None:
        self._backend = backend
        self._timeout = timeout_seconds
        self._max_candidates = max_candidates
        self._breaker = breaker or FailureBreaker()

    @classmethod
    def from_config(cls, config: PedidosConfig) -> LLMReranker:
        """Build a reranker; without an API key it is permanently unavailable."""
        llm = config.llm
        backend = None
        if not llm.enabled:
            logger.info("IA deshabilitada en la configuracion")
        elif not llm.api_key:
            logger.info("Sin API key para %s, se usara seleccion automatica", llm.backend)
        else:
            backend = create_backend(config)
        return cls(
            backend=backend,
            timeout_seconds=llm.timeout_seconds,
            max_candidates=llm.max_candidates,
            breaker=FailureBreaker(llm.failure_threshold, llm.cooldown_seconds),
        )

    @property
    def available(self) -> bool:
        return self._backend is not None and not self._breaker.is_open()

    @property
    def breaker(self) -> FailureBreaker:
        return self._breaker

    async def rerank(self, utterance: str, candidates: Sequence[Product]) -> int | None:
        """Return the chosen candidate index, or None on any failure."""
        outcome = await self.rerank_outcome(utterance, candidates)
        if isinstance(outcome, Selection):
            return outcome.index
        return None

    async def rerank_outcome(
        self, utterance: str, candidates: Sequence[Product]
    ) -> RerankOutcome:
        if not candidates:
            return Unavailable("sin candidatos")
        shown = list(candidates)[: self._max_candidates]
        payload = [
            {
                "id": i,
                "name": p.description,
                "price": p.price,
                "brand": p.brand or "sin marca",
            }
            for i, p in enumerate(shown)
        ]
        prompt = _RERANK_PROMPT.format(
            utterance=utterance,
            products=json.dumps(payload, ensure_ascii=False, indent=2),
        )

        reply = await self._call(prompt)
        if not isinstance(reply, str):
            return reply

        outcome = parse_selection_reply(reply, len(shown))
        if isinstance(outcome, Selection):
            logger.info(
                "IA eligio %r: %s", shown[outcome.index].description, outcome.reason
            )
        else:
            logger.warning("Respuesta de IA no interpretable: %r", reply[:200])
        return outcome

    async def interpret_quantity(self, utterance: str, product: Product) -> int:
        """Map a vague amount ("un poco de queso") to a unit count, default 1."""
        prompt = _QUANTITY_PROMPT.format(utterance=utterance, product=product.description)
        reply = await self._call(prompt)
        if not isinstance(reply, str):
            return 1
        data = _extract_json(reply)
        if data is None:
            return 1
        quantity = data.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, (int, float)):
            return 1
        quantity = int(quantity)
        if not 1 <= quantity <= MAX_QUANTITY:
            return 1
        return quantity

    async def _call(self, prompt: str) -> str | Timeout | Unavailable:
        if self._backend is None:
            return Unavailable("sin backend de IA")
        if self._breaker.is_open():
            return Unavailable("IA en enfriamiento")

        try:
            reply = await asyncio.wait_for(
                self._backend.generate(prompt), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("IA sin respuesta en %.1f s", self._timeout)
            self._breaker.record_failure()
            return Timeout(self._timeout)
        except Exception as e:
            logger.exception("Error llamando a la IA")
            self._breaker.record_failure()
            return Unavailable(str(e) or type(e).__name__)

        self._breaker.record_success()
        return reply or ""


def parse_selection_reply(text: str, candidate_count: int) -> Selection | ParseFailure:
    """Validate a ``{"selectedId": n, "reason": "..."}`` reply."""
    data = _extract_json(text)
    if data is None:
        return ParseFailure(text)
    selected = data.get("selectedId")
    if isinstance(selected, bool) or not isinstance(selected, int):
        return ParseFailure(text)
    if not 0 <= selected < candidate_count:
        return ParseFailure(text)
    reason = data.get("reason", "")
    return Selection(index=selected, reason=reason if isinstance(reason, str) else "")


def _extract_json(text: str) -> dict | None:
    """Parse the first JSON object in a reply, tolerating markdown fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)

    match = _JSON_OBJECT.search(cleaned)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
