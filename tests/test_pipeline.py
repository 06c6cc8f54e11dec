"""End-to-end tests for the request pipeline."""

import pytest

from autoservicio.pedidos.catalog import CatalogProvider, Product
from autoservicio.pedidos.config import load_config
from autoservicio.pedidos.entities import (
    ADD_TO_CART,
    ASK_PRICE,
    FINALIZE_ORDER,
    GREET,
    MODIFY_ORDER,
)
from autoservicio.pedidos.pipeline import OrderPipeline, build_pipeline


def _store_catalog() -> list[Product]:
    return [
        Product("ARROZ DIANA 500G", 2800.0, brand="Diana"),
        Product("ACEITE GIRASOL 1L", 9000.0),
        Product("ACEITE GIRASOL 500ML", 5000.0),
        Product("LECHE ENTERA 1L", 4200.0),
    ]


def _rice_aisle() -> list[Product]:
    return [
        Product("ARROZ BLANCO 500G", 2500.0),
        Product("ARROZ INTEGRAL 500G", 4100.0),
        Product("ARROZ PARBOLIZADO 1KG", 5600.0),
        Product("ARROZ JAZMIN 500G", 7800.0),
        Product("ARROZ BASMATI 500G", 9900.0),
        Product("ARROZ ARBORIO 1KG", 14500.0),
    ]


def _pipeline(products) -> OrderPipeline:
    return OrderPipeline(CatalogProvider.from_products(products))


class TestProcessRequest:
    @pytest.mark.asyncio
    async def test_multi_item_request(self):
        pipeline = _pipeline(_store_catalog())

        result = await pipeline.process_request("2 arroces y aceite de litro", "c1")

        assert result.intent == ADD_TO_CART
        assert [(m.product.description, m.quantity) for m in result.matches] == [
            ("ARROZ DIANA 500G", 2),
            ("ACEITE GIRASOL 1L", 1),
        ]
        assert result.not_found == []
        assert not result.needs_clarification
        assert result.order.total == 2 * 2800.0 + 9000.0
        assert "Agregado: 2 x ARROZ DIANA 500G" in result.message

    @pytest.mark.asyncio
    async def test_not_found(self):
        pipeline = _pipeline(_store_catalog())
        result = await pipeline.process_request("quiero quinua", "c1")
        assert result.matches == []
        assert result.not_found == ["quinua"]
        assert pipeline.orders.get_order("c1") is None

    @pytest.mark.asyncio
    async def test_empty_catalog_never_raises(self):
        pipeline = _pipeline([])
        result = await pipeline.process_request("2 arroces y aceite de litro", "c1")
        assert result.matches == []
        assert result.not_found == ["arroces", "aceite"]

    @pytest.mark.asyncio
    async def test_greeting_does_not_search(self):
        pipeline = _pipeline(_store_catalog())
        result = await pipeline.process_request("Hola", "c1")
        assert result.intent == GREET
        assert result.matches == []
        assert result.message

    @pytest.mark.asyncio
    async def test_price_question_leaves_cart_alone(self):
        pipeline = _pipeline(_store_catalog())
        result = await pipeline.process_request("cuanto cuesta la leche", "c1")
        assert result.intent == ASK_PRICE
        assert result.matches[0].product.description == "LECHE ENTERA 1L"
        assert "$4.200" in result.message
        assert pipeline.orders.get_order("c1") is None

    @pytest.mark.asyncio
    async def test_modify_removes_line(self):
        pipeline = _pipeline(_store_catalog())
        await pipeline.process_request("2 arroces y 1 leche", "c1")

        result = await pipeline.process_request("quita el arroz", "c1")

        assert result.intent == MODIFY_ORDER
        assert result.removed == ["ARROZ DIANA 500G"]
        assert [i.product.description for i in result.order.items] == ["LECHE ENTERA 1L"]

    @pytest.mark.asyncio
    async def test_modify_plural(self):
        pipeline = _pipeline(_store_catalog())
        await pipeline.process_request("2 arroces", "c1")
        result = await pipeline.process_request("quita los arroces", "c1")
        assert result.removed == ["ARROZ DIANA 500G"]

    @pytest.mark.asyncio
    async def test_modify_empty_cart(self):
        pipeline = _pipeline(_store_catalog())
        result = await pipeline.process_request("quita el arroz", "c1")
        assert result.removed == []

    @pytest.mark.asyncio
    async def test_weight_of_unsized_product_adds_one_package(self):
        pipeline = _pipeline([Product("QUESO CAMPESINO", 7000.0)])
        result = await pipeline.process_request("quiero 500g de queso", "c1")
        assert result.matches[0].quantity == 1
        assert result.order.items[0].quantity == 1
        assert result.order.total == 7000.0

    @pytest.mark.asyncio
    async def test_finalize_reports_total(self):
        pipeline = _pipeline(_store_catalog())
        await pipeline.process_request("2 arroces", "c1")
        result = await pipeline.process_request("listo", "c1")
        assert result.intent == FINALIZE_ORDER
        assert "5.600" in result.message


class TestClarificationFlow:
    @pytest.mark.asyncio
    async def test_ask_then_select(self):
        pipeline = _pipeline(_rice_aisle())

        result = await pipeline.process_request("quiero arroz", "c1")

        assert result.needs_clarification
        assert len(result.options) == 4
        assert result.matches == []
        assert "¿Cuál prefieres?" in result.message

        answer = await pipeline.process_request("2", "c1")

        assert [m.product.description for m in answer.matches] == ["ARROZ INTEGRAL 500G"]
        assert not answer.needs_clarification
        assert answer.order.total == 4100.0
        assert not pipeline.clarifications.has_pending("c1")

    @pytest.mark.asyncio
    async def test_quantity_kept_across_turns(self):
        pipeline = _pipeline(_rice_aisle())
        await pipeline.process_request("3 arroces", "c1")
        answer = await pipeline.process_request("el primero", "c1")
        assert answer.matches[0].product.description == "ARROZ BLANCO 500G"
        assert answer.matches[0].quantity == 3

    @pytest.mark.asyncio
    async def test_select_by_description(self):
        pipeline = _pipeline(_rice_aisle())
        await pipeline.process_request("arroz", "c1")
        answer = await pipeline.resolve_clarification("c1", "parbolizado")
        assert answer.matches[0].product.description == "ARROZ PARBOLIZADO 1KG"

    @pytest.mark.asyncio
    async def test_cancel(self):
        pipeline = _pipeline(_rice_aisle())
        await pipeline.process_request("arroz", "c1")
        answer = await pipeline.process_request("nada", "c1")
        assert answer.matches == []
        assert not answer.needs_clarification
        assert "omití" in answer.message
        assert pipeline.orders.get_order("c1") is None

    @pytest.mark.asyncio
    async def test_unrecognised_reply_keeps_question(self):
        pipeline = _pipeline(_rice_aisle())
        await pipeline.process_request("arroz", "c1")
        answer = await pipeline.resolve_clarification("c1", "azul")
        assert answer.needs_clarification
        assert len(answer.options) == 4
        assert pipeline.clarifications.has_pending("c1")

    @pytest.mark.asyncio
    async def test_no_pending(self):
        pipeline = _pipeline(_rice_aisle())
        answer = await pipeline.resolve_clarification("c1", "1")
        assert answer.matches == []

    @pytest.mark.asyncio
    async def test_customers_do_not_share_questions(self):
        pipeline = _pipeline(_rice_aisle())
        await pipeline.process_request("arroz", "c1")
        assert not pipeline.clarifications.has_pending("c2")

    @pytest.mark.asyncio
    async def test_price_question_answer_leaves_cart_alone(self):
        pipeline = _pipeline(_rice_aisle())
        asked = await pipeline.process_request("cuanto cuesta el arroz", "c1")
        assert asked.intent == ASK_PRICE
        assert asked.needs_clarification

        answer = await pipeline.process_request("1", "c1")

        assert answer.intent == ASK_PRICE
        assert answer.matches[0].product.description == "ARROZ BLANCO 500G"
        assert "ARROZ BLANCO 500G: $2.500" in answer.message
        assert "Agregado" not in answer.message
        assert pipeline.orders.get_order("c1") is None

    @pytest.mark.asyncio
    async def test_ordinal_word_in_new_request_is_not_a_reply(self):
        pipeline = _pipeline(_rice_aisle())
        await pipeline.process_request("quiero arroz", "c1")

        await pipeline.process_request("quiero arroz de primera", "c1")

        assert pipeline.clarifications.peek("c1").segment == "quiero arroz"
        assert pipeline.orders.get_order("c1") is None


class TestSearchAndBuild:
    def test_search_uses_current_snapshot(self):
        pipeline = _pipeline(_store_catalog())
        assert pipeline.search("aceite")[0].product.description.startswith("ACEITE")

        pipeline.catalog.replace([Product("ACEITE OLIVA 250ML", 21000.0)])
        assert [r.product.description for r in pipeline.search("aceite")] == ["ACEITE OLIVA 250ML"]

    def test_build_pipeline_loads_catalog(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        path = tmp_path / "productos.csv"
        path.write_text("DESCRIPCION,VENTA1\nARROZ DIANA 500G,2800\n", encoding="utf-8")

        pipeline = build_pipeline(load_config(), catalog_path=path)

        assert len(pipeline.catalog.get_products()) == 1
        assert pipeline.resolver.settings.max_auto_candidates == 5

    @pytest.mark.asyncio
    async def test_build_pipeline_missing_catalog(self, tmp_path, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        pipeline = build_pipeline(load_config(), catalog_path=tmp_path / "nope.csv")
        result = await pipeline.process_request("arroz", "c1")
        assert result.not_found == ["arroz"]

    def test_stale_catalog_reloaded_before_search(self, tmp_path):
        path = tmp_path / "productos.csv"
        path.write_text("DESCRIPCION,VENTA1\nARROZ DIANA 500G,2800\n", encoding="utf-8")
        pipeline = OrderPipeline(CatalogProvider(path, max_age_seconds=-1))

        assert [r.product.description for r in pipeline.search("arroz")] == ["ARROZ DIANA 500G"]

        path.write_text("DESCRIPCION,VENTA1\nARROZ ROA 1KG,5200\n", encoding="utf-8")
        assert [r.product.description for r in pipeline.search("arroz")] == ["ARROZ ROA 1KG"]

    def test_failed_reload_keeps_serving_snapshot(self, tmp_path):
        path = tmp_path / "productos.csv"
        path.write_text("DESCRIPCION,VENTA1\nARROZ DIANA 500G,2800\n", encoding="utf-8")
        pipeline = OrderPipeline(CatalogProvider(path, max_age_seconds=-1))
        pipeline.search("arroz")

        path.unlink()

        assert [r.product.description for r in pipeline.search("arroz")] == ["ARROZ DIANA 500G"]
