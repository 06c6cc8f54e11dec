"""CLI entry point for the order-resolution module."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

from dotenv import load_dotenv

from .config import load_config
from .entities import classify_intent
from .pipeline import OrderPipeline, ProcessResult, build_pipeline
from .resolver import format_price


def main(argv: list[str] | None = None) -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="autoservicio-pedidos",
        description="Pedidos de autoservicio: entiende pedidos en texto libre y arma el carrito",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Ruta del archivo de configuracion (TOML)",
    )
    parser.add_argument(
        "--catalog",
        type=str,
        default=None,
        help="Archivo de productos (CSV / JSON), reemplaza [catalog] path",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log detallado")

    sub = parser.add_subparsers(dest="command")

    # search
    search_parser = sub.add_parser("search", help="Buscar productos")
    search_parser.add_argument("query", type=str, nargs="+", help="Texto a buscar")
    search_parser.add_argument("--limit", type=int, default=None, help="Maximo de resultados")
    search_parser.add_argument("--json", action="store_true", help="Salida en JSON")

    # parse
    parse_parser = sub.add_parser("parse", help="Clasificar intencion y extraer entidades")
    parse_parser.add_argument("text", type=str, nargs="+", help="Mensaje del cliente")
    parse_parser.add_argument("--json", action="store_true", help="Salida en JSON")

    # order
    order_parser = sub.add_parser("order", help="Procesar un pedido completo")
    order_parser.add_argument("text", type=str, nargs="+", help="Mensaje del cliente")
    order_parser.add_argument("--customer", type=str, default="cli", help="Id del cliente")
    order_parser.add_argument("--json", action="store_true", help="Salida en JSON")

    # chat
    chat_parser = sub.add_parser("chat", help="Conversacion interactiva por consola")
    chat_parser.add_argument("--customer", type=str, default="cli", help="Id del cliente")
    chat_parser.add_argument(
        "--refresh", action="store_true", help="Recargar el catalogo segun [catalog] refresh_schedule"
    )

    # categories
    sub.add_parser("categories", help="Listar categorias del catalogo")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)

    match args.command:
        case "parse":
            _cmd_parse(args)
        case "search":
            _cmd_search(build_pipeline(config, args.catalog), args)
        case "order":
            asyncio.run(_cmd_order(build_pipeline(config, args.catalog), args))
        case "chat":
            asyncio.run(_cmd_chat(build_pipeline(config, args.catalog), config, args))
        case "categories":
            _cmd_categories(build_pipeline(config, args.catalog))


def _cmd_parse(args) -> None:
    classified = classify_intent(" ".join(args.text))
    if args.json:
        print(json.dumps(asdict(classified), ensure_ascii=False, indent=2))
        return
    print(f"Intencion: {classified.intent} ({classified.confidence:.0%})")
    for name, value in asdict(classified.entities).items():
        if value is not None:
            print(f"  {name:<12} {value}")


def _cmd_search(pipeline: OrderPipeline, args) -> None:
    results = pipeline.search(" ".join(args.query))
    if args.limit is not None:
        results = results[: args.limit]

    if args.json:
        data = [
            {
                "description": r.product.description,
                "price": r.product.price,
                "brand": r.product.brand,
                "score": round(r.score, 3),
                "match_type": r.match_type,
            }
            for r in results
        ]
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return

    if not results:
        print("No se encontraron productos.")
        return
    print(f"{len(results)} resultados:")
    for r in results:
        print(f"  {r.score:.2f} [{r.match_type:<8}] {r.product.description}  ${format_price(r.product.price)}")


async def _cmd_order(pipeline: OrderPipeline, args) -> None:
    result = await pipeline.process_request(" ".join(args.text), args.customer)
    if args.json:
        print(json.dumps(_result_to_dict(result), ensure_ascii=False, indent=2))
    else:
        _print_result(result)


async def _cmd_chat(pipeline: OrderPipeline, config, args) -> None:
    scheduler = None
    if args.refresh:
        from .scheduler import CatalogRefreshScheduler

        scheduler = CatalogRefreshScheduler.from_config(pipeline.catalog, config)
        scheduler.start()

    print("Escribe tu pedido (Ctrl-D para salir).")
    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            if not line.strip():
                continue
            _print_result(await pipeline.process_request(line, args.customer))
    finally:
        if scheduler is not None:
            scheduler.stop()


def _cmd_categories(pipeline: OrderPipeline) -> None:
    categories = pipeline.search_engine.extract_categories(pipeline.catalog.get_products())
    if not categories:
        print("El catalogo no tiene categorias.")
        return
    for category in categories:
        print(f"  {category}")


def _print_result(result: ProcessResult) -> None:
    if result.message:
        print(result.message)
    order = result.order
    if order is not None and not order.is_empty:
        print(f"\nCarrito ({len(order.items)} productos) - Total: ${format_price(order.total)}")


def _result_to_dict(result: ProcessResult) -> dict:
    order = result.order
    return {
        "intent": result.intent,
        "matches": [
            {
                "description": m.product.description,
                "quantity": m.quantity,
                "confidence": m.confidence,
                "auto_selected": m.auto_selected,
            }
            for m in result.matches
        ],
        "not_found": result.not_found,
        "removed": result.removed,
        "needs_clarification": result.needs_clarification,
        "options": [p.description for p in result.options],
        "message": result.message,
        "total": order.total if order is not None else 0.0,
    }
