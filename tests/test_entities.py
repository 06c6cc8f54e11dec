"""Tests for entity extraction and intent classification."""

import pytest

from autoservicio.pedidos.entities import (
    ADD_TO_CART,
    ASK_INFO,
    ASK_PRICE,
    FINALIZE_ORDER,
    GREET,
    MODIFY_ORDER,
    SEARCH_PRODUCT,
    PriceRange,
    classify_intent,
    detect_implicit_quantity,
    extract_bare_unit,
    extract_brand,
    extract_entities,
    extract_price_range,
    extract_product,
    extract_quantity_and_unit,
    is_vague_quantity,
    parse_selection,
)


class TestQuantityAndUnit:
    def test_kilograms(self):
        assert extract_quantity_and_unit("2 kg de arroz") == (2.0, "kilogramos")

    def test_decimal_liters(self):
        assert extract_quantity_and_unit("1.5 litros de leche") == (1.5, "litros")

    def test_grams(self):
        assert extract_quantity_and_unit("500 g de queso") == (500.0, "gramos")

    def test_units(self):
        assert extract_quantity_and_unit("3 unidades de pan") == (3.0, "unidades")

    def test_bare_leading_number(self):
        assert extract_quantity_and_unit("2 arroces") == (2.0, "unidades")

    def test_none(self):
        assert extract_quantity_and_unit("arroz") is None

    def test_bare_unit(self):
        assert extract_bare_unit("aceite de litro") == "litros"
        assert extract_bare_unit("arroz por kilo") == "kilogramos"
        assert extract_bare_unit("arroz") is None


class TestImplicitQuantity:
    def test_number_word(self):
        assert detect_implicit_quantity("dos panes") == 2

    def test_longest_phrase_wins(self):
        assert detect_implicit_quantity("media docena de huevos") == 6

    def test_half(self):
        assert detect_implicit_quantity("medio kilo de carne") == 0.5

    def test_word_boundary(self):
        # "par" inside "parmesano" is not a quantity
        assert detect_implicit_quantity("queso parmesano") is None

    def test_vague(self):
        assert is_vague_quantity("un poco de queso")
        assert is_vague_quantity("algo de jamon")
        assert not is_vague_quantity("2 kg de queso")


class TestBrandAndPrice:
    def test_brand(self):
        assert extract_brand("arroz Diana 500g") == "diana"

    def test_multiword_brand(self):
        assert extract_brand("una coca cola") == "coca cola"

    def test_no_brand(self):
        assert extract_brand("leche entera") is None

    def test_custom_vocabulary(self):
        assert extract_brand("cafe sello rojo", brands=["sello rojo"]) == "sello rojo"

    def test_price_max(self):
        assert extract_price_range("arroz de menos de 5000") == PriceRange(max=5000.0)

    def test_price_min(self):
        assert extract_price_range("vino desde 20000") == PriceRange(min=20000.0)

    def test_price_between_with_separators(self):
        assert extract_price_range("arroz entre 3.000 y 5.000") == PriceRange(
            min=3000.0, max=5000.0
        )

    def test_no_price(self):
        assert extract_price_range("arroz") is None

    def test_price_range_contains(self):
        r = PriceRange(min=1000, max=2000)
        assert r.contains(1500)
        assert not r.contains(2500)
        assert not r.contains(500)


class TestExtractProduct:
    def test_strips_verb_quantity_politeness(self):
        assert extract_product("quiero 2 kg de arroz por favor") == "arroz"

    def test_strips_bare_unit(self):
        assert extract_product("aceite de litro") == "aceite"

    def test_strips_leading_number(self):
        assert extract_product("2 arroces") == "arroces"

    def test_strips_vague_quantity(self):
        assert extract_product("un poco de queso") == "queso"

    def test_keeps_brand(self):
        assert extract_product("dame arroz diana") == "arroz diana"

    def test_short_residual_is_none(self):
        assert extract_product("dame 2 kg") is None


class TestExtractEntities:
    def test_full(self):
        e = extract_entities("2 kg de arroz diana")
        assert e.quantity == 2.0
        assert e.unit == "kilogramos"
        assert e.brand == "diana"
        assert e.product == "arroz diana"

    def test_implicit_quantity_with_bare_unit(self):
        e = extract_entities("medio kilo de carne")
        assert e.quantity == 0.5
        assert e.unit == "kilogramos"
        assert e.product == "carne"

    def test_numeral_beats_words(self):
        e = extract_entities("2 bolsas de leche")
        assert e.quantity == 2.0


class TestParseSelection:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("2", 1),
            ("el 3", 2),
            ("opcion 1", 0),
            ("la primera", 0),
            ("segundo por favor", 1),
            ("el tercero", 2),
            ("quiero arroz de primera", None),
            ("un segundo paquete de leche", None),
            ("0", None),
            ("quiero arroz", None),
            ("", None),
        ],
    )
    def test_selection(self, text, expected):
        assert parse_selection(text) == expected


class TestClassifyIntent:
    def test_greeting(self):
        result = classify_intent("Hola")
        assert result.intent == GREET
        assert result.confidence == 0.95

    def test_greeting_with_order_is_add(self):
        assert classify_intent("hola, quiero arroz").intent == ADD_TO_CART

    def test_greeting_prefix_is_word_bound(self):
        assert classify_intent("higado").intent == SEARCH_PRODUCT

    def test_add_with_quantity(self):
        result = classify_intent("2 kg de arroz")
        assert result.intent == ADD_TO_CART
        assert result.confidence == 0.92
        assert result.entities.product == "arroz"

    def test_add_keyword_only(self):
        result = classify_intent("quiero arroz")
        assert result.intent == ADD_TO_CART
        assert result.confidence == 0.80

    def test_price(self):
        result = classify_intent("¿Cuánto cuesta el arroz?")
        assert result.intent == ASK_PRICE
        assert result.entities.product == "arroz"

    def test_info(self):
        result = classify_intent("informacion del arroz")
        assert result.intent == ASK_INFO
        assert result.entities.product == "arroz"

    def test_modify(self):
        result = classify_intent("quita el arroz")
        assert result.intent == MODIFY_ORDER
        assert result.entities.product == "arroz"

    def test_modify_beats_add(self):
        assert classify_intent("quita 2 arroces").intent == MODIFY_ORDER

    def test_finalize(self):
        assert classify_intent("listo").intent == FINALIZE_ORDER

    def test_default_search(self):
        result = classify_intent("arroz")
        assert result.intent == SEARCH_PRODUCT
        assert result.confidence == 0.70
