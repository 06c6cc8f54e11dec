"""TOML configuration loader for the order-resolution module."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]


@dataclass
class CatalogConfig:
    path: str = "./assets/productos.csv"
    max_age_seconds: float = 300.0
    refresh_schedule: str = "*/5 * * * *"


@dataclass
class SearchConfig:
    max_results: int = 15
    min_score: float = 0.3
    include_category: bool = False


@dataclass
class ResolverConfig:
    # Candidate search for one sub-request
    candidate_max_results: int = 10
    candidate_min_score: float = 0.5
    # Up to this many candidates are resolved without asking the customer
    max_auto_candidates: int = 5
    # "Needs user choice": at least this many candidates AND
    # max_price / min_price above the ratio
    min_candidates_for_choice: int = 5
    price_ratio_threshold: float = 2.0
    # Options shown in a clarification question
    clarification_options: int = 4


@dataclass
class ClaudeLLMConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class GeminiLLMConfig:
    api_key: str = ""
    model: str = "gemini-1.5-flash"


@dataclass
class LLMConfig:
    enabled: bool = True
    backend: str = "gemini"
    timeout_seconds: float = 8.0
    max_candidates: int = 15
    failure_threshold: int = 1
    cooldown_seconds: float = 300.0
    claude: ClaudeLLMConfig = field(default_factory=ClaudeLLMConfig)
    gemini: GeminiLLMConfig = field(default_factory=GeminiLLMConfig)

    @property
    def api_key(self) -> str:
        """API key of the selected backend."""
        match self.backend:
            case "claude":
                return self.claude.api_key
            case "gemini":
                return self.gemini.api_key
            case _:
                return ""


@dataclass
class PedidosConfig:
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)


def load_config(path: str | Path | None = None) -> PedidosConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys can be overridden via environment variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cat = raw.get("catalog", {})
    srch = raw.get("search", {})
    res = raw.get("resolver", {})
    llm = raw.get("llm", {})

    claude_cfg = llm.get("claude", {})
    gemini_cfg = llm.get("gemini", {})

    # Resolve API keys: config file → environment variable
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )
    gemini_api_key = gemini_cfg.get("api_key", "") or os.environ.get(
        "GEMINI_API_KEY", ""
    )

    defaults = ResolverConfig()

    return PedidosConfig(
        catalog=CatalogConfig(
            path=cat.get("path", "./assets/productos.csv"),
            max_age_seconds=cat.get("max_age_seconds", 300.0),
            refresh_schedule=cat.get("refresh_schedule", "*/5 * * * *"),
        ),
        search=SearchConfig(
            max_results=srch.get("max_results", 15),
            min_score=srch.get("min_score", 0.3),
            include_category=srch.get("include_category", False),
        ),
        resolver=ResolverConfig(
            candidate_max_results=res.get(
                "candidate_max_results", defaults.candidate_max_results
            ),
            candidate_min_score=res.get(
                "candidate_min_score", defaults.candidate_min_score
            ),
            max_auto_candidates=res.get(
                "max_auto_candidates", defaults.max_auto_candidates
            ),
            min_candidates_for_choice=res.get(
                "min_candidates_for_choice", defaults.min_candidates_for_choice
            ),
            price_ratio_threshold=res.get(
                "price_ratio_threshold", defaults.price_ratio_threshold
            ),
            clarification_options=res.get(
                "clarification_options", defaults.clarification_options
            ),
        ),
        llm=LLMConfig(
            enabled=llm.get("enabled", True),
            backend=llm.get("backend", "gemini"),
            timeout_seconds=llm.get("timeout_seconds", 8.0),
            max_candidates=llm.get("max_candidates", 15),
            failure_threshold=llm.get("failure_threshold", 1),
            cooldown_seconds=llm.get("cooldown_seconds", 300.0),
            claude=ClaudeLLMConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
            gemini=GeminiLLMConfig(
                api_key=gemini_api_key,
                model=gemini_cfg.get("model", "gemini-1.5-flash"),
            ),
        ),
    )
