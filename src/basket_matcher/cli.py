"""
Command line entry point: match a shopping list file against a catalog.
"""

import argparse
import sys
from typing import List, Optional

from basket_matcher import __version__
from basket_matcher.agents.list_processor import GroceryMatcher, InvalidRequestError
from basket_matcher.core.catalog import CatalogError
from basket_matcher.core.config import CATALOG_PATH, OLLAMA_HOST, OLLAMA_MODEL
from basket_matcher.core.llm_engine import LLMEngine
from basket_matcher.models.cart import ShoppingResult


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="basket-matcher")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("shopping_list", nargs="?", default="-", help="Shopping list file ('-' reads stdin)")
    p.add_argument("--catalog", default=CATALOG_PATH, help="Product catalog JSON file")
    p.add_argument("--no-llm", action="store_true", help="Use the deterministic fallbacks only")
    p.add_argument("--model", default=OLLAMA_MODEL, help="Ollama model name")
    p.add_argument("--host", default=OLLAMA_HOST, help="Ollama host URL")
    p.add_argument("--json", action="store_true", help="Print the full result as JSON")
    return p


def format_report(result: ShoppingResult) -> str:
    summary = result.summary
    lines = [
        f"Found {summary.items_found}/{summary.total_items_requested} items "
        f"({summary.success_rate:.0f}%)  Total: €{result.total_cost}",
        "",
    ]
    for i, match in enumerate(result.found_items, 1):
        lines.append(f"  {i}. {match.product.title}  x{match.units_needed}  €{match.total_price}  [{match.tier.value}]")
        lines.append(f"     → {match.actual_amount:g}{match.actual_unit}  {match.reasoning}")
    if result.not_found:
        lines.append("")
        lines.append("Not found:")
        lines.extend(f"  - {text}" for text in result.not_found)
    if result.cancelled:
        lines.append("")
        lines.append("(cancelled, partial result)")
    return "\n".join(lines)


def _read_list(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    with open(source, encoding="utf-8") as f:
        return f.read()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    llm = None if args.no_llm else LLMEngine(host=args.host, model=args.model)

    try:
        matcher = GroceryMatcher.from_catalog_file(args.catalog, llm=llm)
        result = matcher.process_shopping_list(_read_list(args.shopping_list))
    except (CatalogError, InvalidRequestError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    if args.json:
        print(result.model_dump_json(indent=2))
    else:
        print(format_report(result))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
