"""Typed configuration loader for `config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, cast

import yaml

from .models import Resolution, Rotation, Viewport


_DEFAULT_SOURCES = {
    Resolution.COARSE: "https://cdn.jsdelivr.net/npm/world-atlas@2/countries-110m.json",
    Resolution.FINE: "https://cdn.jsdelivr.net/npm/world-atlas@2/countries-50m.json",
}


def _mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Expected mapping for '{field_name}'")
    return cast(Mapping[str, Any], value)


def _str(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Expected non-empty string for '{field_name}'")
    return value.strip()


def _int(value: Any, field_name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"Expected integer for '{field_name}'")
    return value


def _float(value: Any, field_name: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ValueError(f"Expected float for '{field_name}'")


def _bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected bool for '{field_name}'")
    return value


def _alpha(value: Any, field_name: str) -> float:
    alpha = _float(value, field_name)
    if not 0.0 <= alpha <= 1.0:
        raise ValueError(f"'{field_name}' must be between 0 and 1")
    return alpha


def _source_from_cfg(value: Any, field_name: str, root_dir: Path) -> str:
    raw = _str(value, field_name)
    if raw.startswith(("http://", "https://")):
        return raw
    p = Path(raw)
    return str(p if p.is_absolute() else root_dir / p)


@dataclass(frozen=True, slots=True)
class DatasetsConfig:
    sources: Mapping[Resolution, str]
    object_name: str
    name_property: str
    request_timeout_s: int
    user_agent: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], root_dir: Path) -> DatasetsConfig:
        sources_raw = _mapping(raw.get("sources"), "datasets.sources")
        sources = dict(_DEFAULT_SOURCES)
        for key, value in sources_raw.items():
            resolution = Resolution.parse(str(key))
            sources[resolution] = _source_from_cfg(value, f"datasets.sources.{key}", root_dir)
        timeout = _int(raw.get("request_timeout_s", 30), "datasets.request_timeout_s")
        if timeout <= 0:
            raise ValueError("datasets.request_timeout_s must be > 0")
        return cls(
            sources=sources,
            object_name=_str(raw.get("object_name", "countries"), "datasets.object_name"),
            name_property=_str(raw.get("name_property", "name"), "datasets.name_property"),
            request_timeout_s=timeout,
            user_agent=_str(raw.get("user_agent", "projview/0.1"), "datasets.user_agent"),
        )


@dataclass(frozen=True, slots=True)
class ViewConfig:
    projection: str
    rotation: Rotation
    show_distortion: bool
    show_grid: bool
    resolution: Resolution
    viewport: Viewport
    device_pixel_ratio: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> ViewConfig:
        rotation_raw = raw.get("rotation", [0, 0])
        if not isinstance(rotation_raw, list) or len(rotation_raw) not in (2, 3):
            raise ValueError("Expected [lambda, phi] list for 'view.rotation'")
        lam = _float(rotation_raw[0], "view.rotation[0]")
        phi = _float(rotation_raw[1], "view.rotation[1]")
        if len(rotation_raw) == 3 and _float(rotation_raw[2], "view.rotation[2]") != 0.0:
            raise ValueError("view.rotation[2] (roll) must be 0")
        dpr = _float(raw.get("device_pixel_ratio", 1.0), "view.device_pixel_ratio")
        if dpr <= 0:
            raise ValueError("view.device_pixel_ratio must be > 0")
        return cls(
            projection=_str(raw.get("projection", "orthographic"), "view.projection"),
            rotation=Rotation(lam, phi, 0.0),
            show_distortion=_bool(raw.get("show_distortion", True), "view.show_distortion"),
            show_grid=_bool(raw.get("show_grid", True), "view.show_grid"),
            resolution=Resolution.parse(_str(raw.get("resolution", "coarse"), "view.resolution")),
            viewport=Viewport(
                _float(raw.get("width_px", 960), "view.width_px"),
                _float(raw.get("height_px", 600), "view.height_px"),
            ),
            device_pixel_ratio=dpr,
        )


@dataclass(frozen=True, slots=True)
class LayerStyle:
    fill: str | None
    fill_alpha: float
    stroke: str | None
    stroke_alpha: float
    line_width: float

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], field_name: str, default: LayerStyle) -> LayerStyle:
        fill_raw = raw.get("fill", default.fill)
        stroke_raw = raw.get("stroke", default.stroke)
        return cls(
            fill=_str(fill_raw, f"{field_name}.fill") if fill_raw is not None else None,
            fill_alpha=_alpha(raw.get("fill_alpha", default.fill_alpha), f"{field_name}.fill_alpha"),
            stroke=_str(stroke_raw, f"{field_name}.stroke") if stroke_raw is not None else None,
            stroke_alpha=_alpha(
                raw.get("stroke_alpha", default.stroke_alpha), f"{field_name}.stroke_alpha"
            ),
            line_width=_float(raw.get("line_width", default.line_width), f"{field_name}.line_width"),
        )


_ACCENT = "#4cc9f0"
_MAGENTA = "#f72585"

_DEFAULT_LAYER_STYLES: dict[str, LayerStyle] = {
    "sphere": LayerStyle("#080a14", 1.0, _ACCENT, 0.3, 1.0),
    "grid": LayerStyle(None, 0.0, _ACCENT, 0.08, 0.5),
    "land": LayerStyle(_ACCENT, 0.15, _ACCENT, 0.5, 0.5),
    "focus": LayerStyle(_ACCENT, 0.45, _MAGENTA, 0.9, 1.2),
    "distortion": LayerStyle(_MAGENTA, 0.1, _MAGENTA, 0.4, 0.8),
    "outline": LayerStyle(None, 0.0, _ACCENT, 0.8, 1.5),
}


@dataclass(frozen=True, slots=True)
class StyleConfig:
    canvas: str
    sphere: LayerStyle
    grid: LayerStyle
    land: LayerStyle
    focus: LayerStyle
    distortion: LayerStyle
    outline: LayerStyle

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> StyleConfig:
        layers = {
            name: LayerStyle.from_mapping(_mapping(raw.get(name), f"style.{name}"), f"style.{name}", default)
            for name, default in _DEFAULT_LAYER_STYLES.items()
        }
        return cls(canvas=_str(raw.get("canvas", "#05060d"), "style.canvas"), **layers)


@dataclass(frozen=True, slots=True)
class SearchConfig:
    min_query_length: int
    max_results: int

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> SearchConfig:
        min_len = _int(raw.get("min_query_length", 2), "search.min_query_length")
        max_results = _int(raw.get("max_results", 10), "search.max_results")
        if min_len < 1:
            raise ValueError("search.min_query_length must be >= 1")
        if max_results < 1:
            raise ValueError("search.max_results must be >= 1")
        return cls(min_query_length=min_len, max_results=max_results)


@dataclass(frozen=True, slots=True)
class AppConfig:
    source_path: Path | None
    datasets: DatasetsConfig
    view: ViewConfig
    style: StyleConfig
    search: SearchConfig
    projections: tuple[Mapping[str, Any], ...]
    log_file: Path | None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], source_path: Path | None) -> AppConfig:
        root_dir = source_path.parent.resolve() if source_path is not None else Path.cwd()
        projections_raw = raw.get("projections", [])
        if not isinstance(projections_raw, list):
            raise ValueError("Expected list for 'projections'")
        for idx, item in enumerate(projections_raw):
            _mapping(item, f"projections[{idx}]")
        log_raw = raw.get("log_file")
        log_file: Path | None = None
        if log_raw is not None:
            log_path = Path(_str(log_raw, "log_file"))
            log_file = log_path if log_path.is_absolute() else root_dir / log_path
        return cls(
            source_path=source_path.resolve() if source_path is not None else None,
            datasets=DatasetsConfig.from_mapping(_mapping(raw.get("datasets"), "datasets"), root_dir),
            view=ViewConfig.from_mapping(_mapping(raw.get("view"), "view")),
            style=StyleConfig.from_mapping(_mapping(raw.get("style"), "style")),
            search=SearchConfig.from_mapping(_mapping(raw.get("search"), "search")),
            projections=tuple(projections_raw),
            log_file=log_file,
        )


def default_config() -> AppConfig:
    """Built-in settings used when no config file is given."""
    return AppConfig.from_mapping({}, None)


def load_config(path: str | Path) -> AppConfig:
    """Load and validate the YAML config file into typed settings."""
    cfg_path = Path(path).resolve()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level config must be a YAML mapping")
    return AppConfig.from_mapping(cast(Mapping[str, Any], raw), cfg_path)
