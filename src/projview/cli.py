"""CLI entrypoint for the projview map explorer."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from .config import AppConfig, default_config, load_config
from .geometry import GeometrySource, LoadError
from .models import Resolution, Rotation
from .projections import UnknownProjectionError, catalog_from_config
from .render import MatplotlibSurface
from .search import SearchIndex, SearchStatus
from .session import MapSession
from .util import setup_logging

LOGGER = logging.getLogger("projview.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="projview",
        description="Interactive world map projection explorer.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default=None, help="Path to YAML config. Built-in defaults if omitted.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    view_p = subparsers.add_parser("view", help="Open the interactive map window.")
    add_common(view_p)

    proj_p = subparsers.add_parser("projections", help="List the projection catalog by family.")
    add_common(proj_p)

    search_p = subparsers.add_parser("search", help="Search region names in a dataset.")
    add_common(search_p)
    search_p.add_argument("query", help="Case-insensitive name fragment.")
    search_p.add_argument(
        "--resolution",
        choices=[member.value for member in Resolution],
        default=None,
        help="Dataset resolution to search. Defaults to the configured view resolution.",
    )

    snap_p = subparsers.add_parser("snapshot", help="Render one frame to a PNG file.")
    add_common(snap_p)
    snap_p.add_argument("output", help="Destination PNG path.")
    snap_p.add_argument("--projection", default=None, help="Projection id. Defaults to the configured view.")
    snap_p.add_argument(
        "--rotate",
        nargs=2,
        type=float,
        metavar=("LAMBDA", "PHI"),
        default=None,
        help="Globe rotation in degrees.",
    )
    snap_p.add_argument("--focus", default=None, help="Region name to focus and auto-frame.")
    snap_p.add_argument(
        "--resolution",
        choices=[member.value for member in Resolution],
        default=None,
        help="Dataset resolution. Defaults to the configured view resolution.",
    )

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config) if args.config else default_config()
    setup_logging(cfg.log_file, verbose=args.verbose)
    return cfg


def _run_view(cfg: AppConfig) -> int:
    from .viewer import launch

    launch(cfg)
    return 0


def _run_projections(cfg: AppConfig) -> int:
    try:
        catalog = catalog_from_config(cfg.projections)
    except ValueError as exc:
        LOGGER.error("Invalid projection config: %s", exc)
        return 1
    for group, entries in catalog.grouped().items():
        print(f"{group}:")
        for entry in entries:
            print(f"  {entry.id:<24} {entry.label:<28} scale=min(w,h)/{entry.family.scale_divisor:g}")
    return 0


def _run_search(cfg: AppConfig, *, query: str, resolution: str | None) -> int:
    source = GeometrySource(cfg.datasets)
    try:
        dataset = source.load(resolution or cfg.view.resolution)
    except LoadError as exc:
        LOGGER.error("%s", exc)
        return 1
    index = SearchIndex(
        min_query_length=cfg.search.min_query_length,
        max_results=cfg.search.max_results,
    )
    result = index.query(query, dataset.features)
    if result.status is SearchStatus.TOO_SHORT:
        LOGGER.error("Query must be at least %d characters.", cfg.search.min_query_length)
        return 2
    if result.status is SearchStatus.NO_MATCHES:
        LOGGER.info("No regions match '%s'.", result.query)
        return 1
    for feature, label in result.items:
        lon, lat = feature.centroid if feature.centroid is not None else (float("nan"), float("nan"))
        print(f"{label}\t{lon:.2f}\t{lat:.2f}")
    return 0


def _run_snapshot(
    cfg: AppConfig,
    *,
    output: Path,
    projection: str | None,
    rotate: Sequence[float] | None,
    focus: str | None,
    resolution: str | None,
) -> int:
    surface = MatplotlibSurface.offscreen(
        cfg.view.viewport,
        background=cfg.style.canvas,
        device_pixel_ratio=cfg.view.device_pixel_ratio,
    )
    session = MapSession.from_config(cfg, surface)
    changes: dict[str, object] = {}
    if projection:
        changes["projection_id"] = projection
    if rotate is not None:
        changes["rotation"] = Rotation(float(rotate[0]), float(rotate[1]), 0.0)
    if resolution:
        changes["resolution"] = Resolution.parse(resolution)
    session.state = session.state.evolve(**changes)

    if projection and projection not in session.factory.catalog:
        LOGGER.error("%s", UnknownProjectionError(projection, session.factory.catalog.ids))
        return 1
    if not session.start():
        LOGGER.error("Nothing rendered: %s", session.message)
        return 1
    if focus:
        feature = session.dataset.find(focus) if session.dataset is not None else None
        if feature is None:
            LOGGER.error("No region named '%s' in the %s dataset.", focus, session.state.resolution.value)
            return 1
        session.focus(feature)

    output.parent.mkdir(parents=True, exist_ok=True)
    surface.figure.savefig(output, facecolor=cfg.style.canvas)
    LOGGER.info("Snapshot of %s written to %s", session.state.projection_id, output)
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = args.command
    if command == "view":
        return _run_view(cfg)
    if command == "projections":
        return _run_projections(cfg)
    if command == "search":
        return _run_search(cfg, query=str(args.query), resolution=args.resolution)
    if command == "snapshot":
        return _run_snapshot(
            cfg,
            output=Path(args.output),
            projection=args.projection,
            rotate=args.rotate,
            focus=args.focus,
            resolution=args.resolution,
        )
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
