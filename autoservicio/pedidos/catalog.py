"""Product catalog: data types, file loader and snapshot provider."""

from __future__ import annotations

import csv
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path

from .text import normalize

logger = logging.getLogger(__name__)

# Accepted column names per field, first match wins
_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "description": ("DESCRIPCION", "descripcion", "description", "nombre", "name"),
    "price": ("VENTA1", "ventas", "venta", "precio", "price"),
    "category": ("CATEGORIA", "categoria", "category"),
    "brand": ("MARCA", "marca", "brand"),
    "unit": ("UNIDAD", "unidad", "unit"),
    "barcode": ("CODIGO_BARRAS", "codigoBarras", "codigo_barras", "barcode", "ean"),
    "keywords": ("KEYWORDS", "keywords", "palabras_clave"),
}


@dataclass(frozen=True)
class Product:
    """A catalog row. ``description`` is the identity used for dedup and carts."""

    description: str
    price: float
    category: str = ""
    brand: str = ""
    unit: str = ""
    barcode: str = ""
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class Catalog:
    """Immutable catalog snapshot. Reloads build a new instance."""

    products: tuple[Product, ...] = ()
    source: str = ""
    loaded_at: float = field(default_factory=time.time)

    def __len__(self) -> int:
        return len(self.products)


def derive_keywords(
    brand: str = "", category: str = "", extra: str | list[str] | None = None
) -> tuple[str, ...]:
    """Build the normalized keyword set for a product.

    Keywords come from the brand, the category and any explicit keyword
    list ("arroz blanco; grano largo").
    """
    raw: list[str] = [brand, category]
    if isinstance(extra, str):
        raw.extend(extra.replace(";", ",").split(","))
    elif extra:
        raw.extend(extra)

    seen: list[str] = []
    for item in raw:
        kw = normalize(item)
        if kw and kw not in seen:
            seen.append(kw)
    return tuple(seen)


def product_from_row(row: dict) -> Product | None:
    """Build a Product from a loosely-typed row, or None if it is unusable.

    Rows without a description or with a non-positive price are dropped.
    """
    description = str(_pick(row, "description") or "").strip()
    if not description:
        return None
    try:
        price = float(str(_pick(row, "price") or 0).replace(",", ""))
    except ValueError:
        return None
    if price <= 0:
        return None

    brand = str(_pick(row, "brand") or "").strip()
    category = str(_pick(row, "category") or "").strip()
    return Product(
        description=description,
        price=price,
        category=category,
        brand=brand,
        unit=str(_pick(row, "unit") or "").strip(),
        barcode=str(_pick(row, "barcode") or "").strip(),
        keywords=derive_keywords(brand, category, _pick(row, "keywords")),
    )


def build_catalog(rows: list[dict], source: str = "") -> Catalog:
    """Convert raw rows into a Catalog, dropping malformed and duplicate rows."""
    products: list[Product] = []
    seen: set[str] = set()
    dropped = 0
    duplicates = 0
    for row in rows:
        product = product_from_row(row)
        if product is None:
            dropped += 1
            continue
        if product.description in seen:
            duplicates += 1
            continue
        seen.add(product.description)
        products.append(product)

    if dropped:
        logger.warning("%d filas sin descripcion o precio valido descartadas", dropped)
    if duplicates:
        logger.warning("%d productos con descripcion duplicada descartados", duplicates)
    logger.info("%d productos cargados desde %s", len(products), source or "memoria")
    return Catalog(products=tuple(products), source=source)


def load_catalog(path: str | Path) -> Catalog:
    """Load a catalog from a CSV or JSON file.

    JSON may be a list of rows or an object with a "products" list.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the format is not supported or the JSON is invalid.
    """
    p = Path(path).expanduser()
    if not p.exists():
        raise FileNotFoundError(f"Archivo de productos no encontrado: {p}")

    suffix = p.suffix.lower()
    if suffix == ".json":
        with open(p, encoding="utf-8") as f:
            try:
                raw = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"JSON de productos invalido: {e}") from e
        rows = raw.get("products", []) if isinstance(raw, dict) else raw
        if not isinstance(rows, list):
            raise ValueError("El JSON de productos debe contener una lista")
    elif suffix in (".csv", ".tsv"):
        delimiter = "\t" if suffix == ".tsv" else ","
        with open(p, encoding="utf-8-sig", newline="") as f:
            rows = list(csv.DictReader(f, delimiter=delimiter))
    else:
        raise ValueError(f"Formato de catalogo no soportado: {p.suffix!r} (csv / tsv / json)")

    return build_catalog([r for r in rows if isinstance(r, dict)], source=str(p))


class CatalogProvider:
    """Holds the current catalog snapshot and swaps it on reload.

    Readers call ``get_products()`` once per request and keep that tuple;
    a concurrent reload replaces the reference, never the contents.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        max_age_seconds: float = 300.0,
        catalog: Catalog | None = None,
    ) -> None:
        self._path = Path(path).expanduser() if path else None
        self._max_age = max_age_seconds
        self._catalog = catalog or Catalog()

    @classmethod
    def from_products(cls, products: list[Product]) -> CatalogProvider:
        return cls(catalog=Catalog(products=tuple(products), source="memoria"))

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    def get_products(self) -> tuple[Product, ...]:
        return self._catalog.products

    def is_stale(self) -> bool:
        return time.time() - self._catalog.loaded_at > self._max_age

    def reload(self) -> Catalog:
        """Load the source file and publish a new snapshot.

        On failure the previous snapshot stays in place and the error is
        re-raised to the caller.
        """
        if self._path is None:
            return self._catalog
        catalog = load_catalog(self._path)
        self._catalog = catalog
        return catalog

    def refresh_if_stale(self) -> Catalog:
        if self._path is not None and (not self._catalog.products or self.is_stale()):
            return self.reload()
        return self._catalog

    def replace(self, products: list[Product]) -> Catalog:
        self._catalog = Catalog(products=tuple(products), source="memoria")
        return self._catalog


def _pick(row: dict, field_name: str):
    for key in _COLUMN_ALIASES[field_name]:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return None
