"""
MedShare CLI entrypoint.

Intended for quick local demos and debugging without a frontend. `list` and
`featured` run the same listing pipeline the API uses; `distance` exposes the
distance calculator directly.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any

from medshare.backend.client import SupabaseClient
from medshare.config.settings import Settings, get_settings
from medshare.core.geo import calculate_distance, format_distance
from medshare.core.logging import configure_logging
from medshare.domain.models import Coordinate, FilterValues
from medshare.listing.pipeline import ListingPipeline, PipelineResult
from medshare.location.provider import build_provider, locate_or_none
from medshare.repository.factory import build_store
from medshare.repository.medicines import MedicineRepository


async def _with_pipeline(settings: Settings, run) -> PipelineResult:
    client = None if settings.backend.mode == "memory" else SupabaseClient.from_settings(settings)
    try:
        repository = MedicineRepository(
            build_store(settings, client),
            sample_fallback=settings.repository.sample_fallback,
        )
        pipeline = ListingPipeline(repository, currency_symbol=settings.listing.currency_symbol)
        return await run(pipeline)
    finally:
        if client is not None:
            await client.aclose()


def _print_result(result: PipelineResult, *, as_json: bool) -> int:
    if as_json:
        payload = {
            "results": [item.model_dump(mode="json") for item in result.listings],
            "error": result.error,
            "is_fallback": result.is_fallback,
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 1 if result.error and not result.listings else 0

    if result.error:
        print(f"Error: {result.error}")
    if result.is_fallback:
        print("(showing built-in sample listings)")
    if not result.listings:
        print("No medicines found.")
    for i, item in enumerate(result.listings, start=1):
        price = "Free" if item.is_free else item.price
        category = f" [{item.category}]" if item.category else ""
        print(f"{i:>2}. {item.name}{category}  {price}  {item.distance}  (expires {item.expiry})")
        if item.locality:
            print(f"    {item.locality}")
    return 1 if result.error and not result.listings else 0


def _bounded(name: str, limit: float):
    def parse(text: str) -> float:
        value = float(text)
        if not -limit <= value <= limit:
            raise argparse.ArgumentTypeError(f"{name} must be between -{limit:g} and {limit:g}, got {text}")
        return value

    parse.__name__ = name
    return parse


_latitude = _bounded("latitude", 90)
_longitude = _bounded("longitude", 180)


def _cmd_list(args: argparse.Namespace) -> int:
    """Handle the `list` subcommand."""
    settings = get_settings()
    values = FilterValues(
        type=args.type,
        sort_by=args.sort_by,
        category=args.category,
        categories=[args.category] if args.category else [],
        distance=args.distance if args.distance is not None else settings.listing.default_distance_km,
    )

    async def run(pipeline: ListingPipeline) -> PipelineResult:
        if args.lat is not None and args.lng is not None:
            location: Coordinate | None = Coordinate(lat=args.lat, lng=args.lng)
        else:
            location = await locate_or_none(build_provider(settings.location))
        return await pipeline.run(args.query, values, location)

    result = asyncio.run(_with_pipeline(settings, run))
    return _print_result(result, as_json=args.json)


def _cmd_featured(args: argparse.Namespace) -> int:
    settings = get_settings()
    limit = args.limit or settings.repository.featured_limit
    result = asyncio.run(_with_pipeline(settings, lambda pipeline: pipeline.featured(limit)))
    return _print_result(result, as_json=args.json)


def _cmd_distance(args: argparse.Namespace) -> int:
    km = calculate_distance(args.lat1, args.lng1, args.lat2, args.lng2)
    if args.json:
        print(json.dumps({"km": km, "display": format_distance(km)}))
    else:
        print(format_distance(km))
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("medshare.api.app:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the MedShare CLI."""
    parser = argparse.ArgumentParser(prog="medshare")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    sub = parser.add_subparsers(dest="command", required=True)

    ls = sub.add_parser("list", help="Search listings with the browse filters.")
    ls.add_argument("query", nargs="?", default="", help="Case-insensitive name search")
    ls.add_argument("--type", choices=["all", "free", "paid"], default="all")
    ls.add_argument("--sort-by", dest="sort_by", choices=["distance", "expiry", "recent"], default="distance")
    ls.add_argument("--category", type=str, default=None)
    ls.add_argument("--distance", type=float, default=None, help="Radius in km (informational)")
    ls.add_argument("--lat", type=_latitude, default=None, help="Viewer latitude (defaults to configured location)")
    ls.add_argument("--lng", type=_longitude, default=None, help="Viewer longitude")
    ls.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    ls.set_defaults(func=_cmd_list)

    feat = sub.add_parser("featured", help="Most recently listed medicines.")
    feat.add_argument("--limit", type=int, default=None)
    feat.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    feat.set_defaults(func=_cmd_featured)

    dist = sub.add_parser("distance", help="Great-circle distance between two points.")
    dist.add_argument("lat1", type=_latitude)
    dist.add_argument("lng1", type=_longitude)
    dist.add_argument("lat2", type=_latitude)
    dist.add_argument("lng2", type=_longitude)
    dist.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    dist.set_defaults(func=_cmd_distance)

    srv = sub.add_parser("serve", help="Run the HTTP API with uvicorn.")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)
    srv.add_argument("--reload", action="store_true")
    srv.set_defaults(func=_cmd_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m medshare.cli`."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging("DEBUG" if args.verbose else None)
    func: Any = getattr(args, "func")
    return int(func(args))


if __name__ == "__main__":
    raise SystemExit(main())
