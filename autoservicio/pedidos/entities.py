"""Rule-based entity extraction and intent classification for shopping requests."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .text import normalize
from .units import normalize_unit

# Intent labels
GREET = "greet"
ADD_TO_CART = "add_to_cart"
ASK_PRICE = "ask_price"
ASK_INFO = "ask_info"
MODIFY_ORDER = "modify_order"
FINALIZE_ORDER = "finalize_order"
SEARCH_PRODUCT = "search_product"

KNOWN_BRANDS: list[str] = [
    "alpina", "diana", "roa", "caribe", "florhuila", "colanta", "nestle",
    "coca cola", "cocacola", "postobon", "parmalat", "fruco", "zenu",
    "ranchera", "piko riko", "yupi", "colombina", "bimbo", "la constancia",
    "la egipciana", "super ricas", "oleocali", "oleollano", "dona pepa",
    "festival", "jet", "milo", "nescafe", "juan valdez", "oma", "rica",
]

# Quantity + unit patterns, most specific first. The first match wins.
_QUANTITY_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(\d+(?:[.,]\d+)?)\s*(kg|kilogramos?|kilos?)\b"),
    re.compile(r"(\d+(?:[.,]\d+)?)\s*(g|gr|gramos?)\b"),
    re.compile(r"(\d+(?:[.,]\d+)?)\s*(l|lt|litros?)\b"),
    re.compile(r"(\d+(?:[.,]\d+)?)\s*(ml|cc|mililitros?)\b"),
    re.compile(r"(\d+(?:[.,]\d+)?)\s*(lb|libras?)\b"),
    re.compile(r"(\d+)\s*(unidades?|u|und|piezas?|pzas?)\b"),
    re.compile(r"^(\d+)\s+(?!kg\b|g\b|l\b)"),
]

# A unit mentioned without a number: "aceite de litro", "arroz por kilo"
_BARE_UNIT = re.compile(
    r"\b(?:de|del|en|por|x)?\s*\b(kilo|kilos|libra|libras|litro|litros|"
    r"kg|lb|gramos|mililitros)\b"
)

_QUANTITY_WORDS: dict[str, float] = {
    "media docena": 6,
    "docena": 12,
    "un": 1,
    "una": 1,
    "uno": 1,
    "dos": 2,
    "tres": 3,
    "cuatro": 4,
    "cinco": 5,
    "seis": 6,
    "siete": 7,
    "ocho": 8,
    "nueve": 9,
    "diez": 10,
    "medio": 0.5,
    "media": 0.5,
    "par": 2,
}
# Longest phrase first so "media docena" wins over "media"
_QUANTITY_WORD_PATTERNS = [
    (re.compile(rf"\b{re.escape(word)}\b"), value)
    for word, value in sorted(_QUANTITY_WORDS.items(), key=lambda kv: -len(kv[0]))
]

_VAGUE_QUANTITY = re.compile(r"\b(un poco|poquito|algo de|algunos?|algunas?|varios|varias|unos|unas|bastante)\b")

_SELECTION_PREFIX = r"^(?:(?:el|la|opcion|numero|num|no)\s+)*"
# Whole-message only: "arroz de primera" is a product, not option 1
_ORDINALS: list[tuple[re.Pattern[str], int]] = [
    (re.compile(_SELECTION_PREFIX + r"primer[oa]?$"), 0),
    (re.compile(_SELECTION_PREFIX + r"segund[oa]$"), 1),
    (re.compile(_SELECTION_PREFIX + r"tercer[oa]?$"), 2),
    (re.compile(_SELECTION_PREFIX + r"cuart[oa]$"), 3),
    (re.compile(_SELECTION_PREFIX + r"quint[oa]$"), 4),
]
_SELECTION_NUMBER = re.compile(_SELECTION_PREFIX + r"(\d+)$")

_ACTION_VERBS = re.compile(
    r"\b(quiero|quisiera|necesito|dame|deme|regalame|agrega|agregar|agregame|"
    r"anade|anadir|pon|poner|ponme|mandame|enviame|traeme|comprar)\b"
)
_ADD_KEYWORD = _ACTION_VERBS
_POLITENESS = re.compile(r"\b(por favor|porfavor|porfa|gracias|please)\b")
_PRICE_PHRASES = re.compile(
    r"\b(cuanto cuesta|cuanto vale|cuanto es|precio de|precio del|valor de|valor del)\b"
)
_PRICE_RANGE_PHRASES = re.compile(
    r"\b(menos de|maximo|max|hasta|mas de|minimo|min|desde|entre)\s*\d+(?:\s*y\s*\d+)?"
)
_QUANTITY_UNIT_PHRASE = re.compile(
    r"\d+(?:[.,]\d+)?\s*(?:kg|kilogramos?|kilos?|g|gr|gramos?|l|lt|litros?|ml|cc|"
    r"mililitros?|lb|libras?|unidades?|u|und|piezas?|pzas?)\b(?:\s+de\b)?"
)
_LEADING_NUMBER = re.compile(r"^\d+(?:[.,]\d+)?\s+(?:de\s+)?")
_LEADING_CONNECTORS = re.compile(r"^(?:(?:de|del|el|la|los|las|me|unos|unas)\s+)+")
_TRAILING_CONNECTORS = re.compile(r"(?:\s+(?:de|del|y|en|por))+$")

_GREETINGS = [
    "hola", "hello", "hi", "buenos dias", "buenas tardes", "buenas noches",
    "buenas", "que tal", "hey", "ey", "buen dia", "buena tarde", "buena noche",
]
_PRICE_INQUIRY = re.compile(r"(cuanto cuesta|precio|valor|costo|cuanto vale|cuanto)")
_INFO_INQUIRY = re.compile(r"(que es|informacion|\binfo\b|detalles|caracteristicas|descripcion|contenido)")
_MODIFICATION = re.compile(r"\b(elimina|quita|quitar|remueve|cambia|modifica|borra|saca|retira)\b")
_FINALIZATION = re.compile(r"\b(finalizar|terminar|listo|confirmar|enviar|pedido completo|ya|eso es todo)\b")


@dataclass
class PriceRange:
    min: float | None = None
    max: float | None = None

    def contains(self, price: float) -> bool:
        if self.min is not None and price < self.min:
            return False
        if self.max is not None and price > self.max:
            return False
        return True


@dataclass
class ExtractedEntities:
    """Entities found in one utterance. Every field is independently optional."""

    quantity: float | None = None
    unit: str | None = None
    brand: str | None = None
    price_range: PriceRange | None = None
    product: str | None = None


@dataclass
class ClassifiedIntent:
    intent: str
    confidence: float
    entities: ExtractedEntities = field(default_factory=ExtractedEntities)


def extract_quantity_and_unit(text: str) -> tuple[float, str] | None:
    """Return (quantity, canonical unit) for the first matching pattern.

    A bare leading number ("2 arroces") is read as a count of units.
    """
    normalized = _normalize_keep_decimals(text)
    for pattern in _QUANTITY_PATTERNS:
        m = pattern.search(normalized)
        if m:
            quantity = float(m.group(1).replace(",", "."))
            unit = m.group(2) if m.lastindex and m.lastindex >= 2 else "unidades"
            return (quantity, normalize_unit(unit))
    return None


def extract_bare_unit(text: str) -> str | None:
    """Detect a unit named without a number ("aceite de litro")."""
    m = _BARE_UNIT.search(normalize(text))
    if m:
        return normalize_unit(m.group(1))
    return None


def detect_implicit_quantity(text: str) -> float | None:
    """Map quantity words ("dos", "media docena") to a number."""
    normalized = normalize(text)
    for pattern, value in _QUANTITY_WORD_PATTERNS:
        if pattern.search(normalized):
            return value
    return None


def is_vague_quantity(text: str) -> bool:
    """True for requests like "un poco de queso" with no usable amount."""
    return bool(_VAGUE_QUANTITY.search(normalize(text)))


def extract_brand(text: str, brands: list[str] | None = None) -> str | None:
    """Return the first known brand contained in the text."""
    normalized = normalize(text)
    padded = f" {normalized} "
    for brand in brands or KNOWN_BRANDS:
        if f" {normalize(brand)} " in padded:
            return brand
    return None


def extract_price_range(text: str) -> PriceRange | None:
    """Parse "menos de 5000", "desde 2000", "entre 3000 y 5000"."""
    normalized = _normalize_keep_decimals(text)

    m = re.search(r"entre\s*\$?\s*(\d+(?:[.,]\d+)*)\s*y\s*\$?\s*(\d+(?:[.,]\d+)*)", normalized)
    if m:
        return PriceRange(min=_parse_price(m.group(1)), max=_parse_price(m.group(2)))

    m = re.search(r"(?:menos de|maximo|max|hasta)\s*\$?\s*(\d+(?:[.,]\d+)*)", normalized)
    if m:
        return PriceRange(max=_parse_price(m.group(1)))

    m = re.search(r"(?:mas de|minimo|min|desde)\s*\$?\s*(\d+(?:[.,]\d+)*)", normalized)
    if m:
        return PriceRange(min=_parse_price(m.group(1)))

    return None


def extract_product(text: str) -> str | None:
    """Return what is left after removing verbs, quantities and fillers.

    Residuals of two characters or less are treated as absent.
    """
    clean = _normalize_keep_decimals(text)
    clean = _ACTION_VERBS.sub(" ", clean)
    clean = _POLITENESS.sub(" ", clean)
    clean = _PRICE_PHRASES.sub(" ", clean)
    clean = _PRICE_RANGE_PHRASES.sub(" ", clean)
    clean = _QUANTITY_UNIT_PHRASE.sub(" ", clean)
    clean = re.sub(r"\s+", " ", clean).strip()
    clean = _LEADING_NUMBER.sub("", clean)
    clean = _VAGUE_QUANTITY.sub(" ", clean)
    for pattern, _ in _QUANTITY_WORD_PATTERNS:
        clean = pattern.sub(" ", clean)
    clean = _BARE_UNIT.sub(" ", clean)
    clean = normalize(clean)
    clean = _LEADING_CONNECTORS.sub("", clean)
    clean = _TRAILING_CONNECTORS.sub("", clean).strip()
    if len(clean) > 2:
        return clean
    return None


def extract_entities(text: str) -> ExtractedEntities:
    """Pull quantity, unit, brand, price range and product name from a request."""
    entities = ExtractedEntities()

    qty = extract_quantity_and_unit(text)
    if qty:
        entities.quantity, entities.unit = qty
    else:
        entities.unit = extract_bare_unit(text)
        implicit = detect_implicit_quantity(text)
        if implicit is not None:
            entities.quantity = implicit

    entities.brand = extract_brand(text)
    entities.price_range = extract_price_range(text)
    entities.product = extract_product(text)
    return entities


def parse_selection(text: str) -> int | None:
    """Parse a clarification reply into a zero-based option index.

    "2", "el 2", "opcion 3", "la primera" are selections; anything
    else returns None.
    """
    normalized = _POLITENESS.sub(" ", normalize(text)).strip()
    if not normalized:
        return None

    m = _SELECTION_NUMBER.match(normalized)
    if m:
        index = int(m.group(1)) - 1
        return index if index >= 0 else None

    for pattern, index in _ORDINALS:
        if pattern.match(normalized):
            return index
    return None


def classify_intent(text: str) -> ClassifiedIntent:
    """Classify a message with ordered rules. The first rule that fires wins."""
    normalized = normalize(text)

    if _is_greeting(normalized) and not _ADD_KEYWORD.search(normalized):
        return ClassifiedIntent(GREET, 0.95)

    add = _detect_add_to_cart(text, normalized)
    if add is not None:
        return add

    if _PRICE_INQUIRY.search(normalized):
        return ClassifiedIntent(ASK_PRICE, 0.90, _product_only(text))

    if _INFO_INQUIRY.search(normalized):
        return ClassifiedIntent(ASK_INFO, 0.85, _product_only(text))

    if _MODIFICATION.search(normalized):
        return ClassifiedIntent(MODIFY_ORDER, 0.88, _product_only(text))

    if _FINALIZATION.search(normalized):
        return ClassifiedIntent(FINALIZE_ORDER, 0.92)

    return ClassifiedIntent(SEARCH_PRODUCT, 0.70, extract_entities(text))


def _detect_add_to_cart(text: str, normalized: str) -> ClassifiedIntent | None:
    if _MODIFICATION.search(normalized):
        return None
    entities = extract_entities(text)
    has_keyword = bool(_ADD_KEYWORD.search(normalized))
    has_quantity = extract_quantity_and_unit(text) is not None
    if has_quantity and entities.product:
        return ClassifiedIntent(ADD_TO_CART, 0.92, entities)
    if has_keyword:
        return ClassifiedIntent(ADD_TO_CART, 0.92 if has_quantity else 0.80, entities)
    return None


def _is_greeting(normalized: str) -> bool:
    return any(normalized == g or normalized.startswith(g + " ") for g in _GREETINGS)


def _product_only(text: str) -> ExtractedEntities:
    # "quita el arroz", "informacion del arroz" -> "arroz"
    stripped = _MODIFICATION.sub(" ", normalize(text))
    stripped = _INFO_INQUIRY.sub(" ", stripped)
    return ExtractedEntities(product=extract_product(stripped))


def _normalize_keep_decimals(text: str) -> str:
    """normalize() that keeps "1.5" and "1,5" intact."""
    protected = re.sub(r"(\d)[.,](\d)", r"\1DECSEP\2", text or "")
    return normalize(protected).replace("decsep", ".")


def _parse_price(s: str) -> float:
    # Colombian prices use "." or "," as thousands separators
    return float(re.sub(r"[.,]", "", s))
