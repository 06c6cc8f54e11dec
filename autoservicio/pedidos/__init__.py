"""Self-service order module: free-text requests to catalog products."""

from .cart import LineItem, Order, OrderStore, validate_quantity
from .catalog import Catalog, CatalogProvider, Product, load_catalog
from .config import (
    CatalogConfig,
    LLMConfig,
    PedidosConfig,
    ResolverConfig,
    SearchConfig,
    load_config,
)
from .entities import ClassifiedIntent, ExtractedEntities, classify_intent, extract_entities
from .llm import GenerationBackend, create_backend
from .pipeline import OrderPipeline, ProcessResult, build_pipeline
from .reranker import LLMReranker, ParseFailure, Selection, Timeout, Unavailable
from .resolver import (
    AmbiguityResolver,
    ClarificationStore,
    Match,
    NeedsClarification,
    NotFound,
    Resolved,
)
from .search import SearchEngine, SearchResult
from .splitter import split_requests
from .text import normalize

__all__ = [
    "Product",
    "Catalog",
    "CatalogProvider",
    "load_catalog",
    "SearchEngine",
    "SearchResult",
    "ClassifiedIntent",
    "ExtractedEntities",
    "classify_intent",
    "extract_entities",
    "split_requests",
    "normalize",
    "GenerationBackend",
    "create_backend",
    "LLMReranker",
    "Selection",
    "ParseFailure",
    "Timeout",
    "Unavailable",
    "AmbiguityResolver",
    "ClarificationStore",
    "Match",
    "Resolved",
    "NotFound",
    "NeedsClarification",
    "LineItem",
    "Order",
    "OrderStore",
    "validate_quantity",
    "OrderPipeline",
    "ProcessResult",
    "build_pipeline",
    "PedidosConfig",
    "CatalogConfig",
    "SearchConfig",
    "ResolverConfig",
    "LLMConfig",
    "load_config",
]
