"""Projection catalog, family table and configured projection instances."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Iterable, Mapping, Sequence

import numpy as np
from pyproj import CRS, Transformer

from . import spherical
from .models import Rotation, Viewport


_LOGGER = logging.getLogger("projview.projections")

_GEOGRAPHIC_UNIT_SPHERE = "+proj=longlat +R=1 +no_defs"


class UnknownProjectionError(LookupError):
    """Raised when a projection id is not in the catalog."""

    def __init__(self, projection_id: str, known: Iterable[str] = ()) -> None:
        self.projection_id = projection_id
        known_list = sorted(known)
        hint = f" Known projections: {', '.join(known_list)}" if known_list else ""
        super().__init__(f"Unknown projection '{projection_id}'.{hint}")

    def __str__(self) -> str:
        return str(self.args[0])


class ProjectionFamily(Enum):
    """Geometric families, in scale-divisor precedence order.

    Each member carries its name tokens, scale divisor and the PROJ
    parameters it forces onto every member projection.
    """

    AZIMUTHAL = (
        "azimuthal",
        ("azimuthal", "orthographic", "stereographic", "gnomonic"),
        2.2,
        (),
    )
    CONIC = ("conic", ("conic",), 4.5, (("lat_1", 20.0), ("lat_2", 50.0)))
    MERCATOR = ("mercator", ("mercator",), 6.5, (("lon_0", 0.0), ("lat_0", 0.0)))
    OTHER = ("other", (), 5.5, ())

    def __init__(
        self,
        label: str,
        tokens: tuple[str, ...],
        scale_divisor: float,
        fixups: tuple[tuple[str, float], ...],
    ) -> None:
        self.label = label
        self.tokens = tokens
        self.scale_divisor = scale_divisor
        self.fixups = fixups

    @classmethod
    def parse(cls, value: str) -> ProjectionFamily:
        normalized = value.strip().casefold()
        for member in cls:
            if member.label == normalized:
                return member
        raise ValueError(f"Unknown projection family '{value}'")


def infer_family(projection_id: str) -> ProjectionFamily:
    """Classify a projection id by name, first matching family wins."""
    normalized = projection_id.casefold()
    for family in ProjectionFamily:
        if any(token in normalized for token in family.tokens):
            return family
    return ProjectionFamily.OTHER


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    id: str
    label: str
    group: str
    proj: str
    family: ProjectionFamily
    params: Mapping[str, float] = field(default_factory=dict)
    clip_angle: float | None = None
    lat_limit: float = 90.0

    def definition(self) -> str:
        """Full PROJ definition on the unit sphere, family fixups applied."""
        params: dict[str, float] = dict(self.params)
        for key, value in self.family.fixups:
            params[key] = value
        parts = [f"+proj={self.proj}", "+R=1"]
        parts.extend(f"+{key}={_format_param(value)}" for key, value in sorted(params.items()))
        parts.append("+no_defs")
        return " ".join(parts)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> CatalogEntry:
        entry_id = raw.get("id")
        proj = raw.get("proj")
        if not isinstance(entry_id, str) or not entry_id.strip():
            raise ValueError("Projection entry needs a non-empty 'id'")
        if not isinstance(proj, str) or not proj.strip():
            raise ValueError(f"Projection '{entry_id}' needs a non-empty 'proj'")
        family_raw = raw.get("family")
        family = (
            ProjectionFamily.parse(family_raw)
            if isinstance(family_raw, str)
            else infer_family(entry_id)
        )
        params_raw = raw.get("params") or {}
        if not isinstance(params_raw, Mapping):
            raise ValueError(f"Projection '{entry_id}' params must be a mapping")
        clip_raw = raw.get("clip_angle")
        lat_limit_raw = raw.get("lat_limit", 90.0)
        if clip_raw is not None and not isinstance(clip_raw, (int, float)):
            raise ValueError(f"Projection '{entry_id}' clip_angle must be numeric")
        if not isinstance(lat_limit_raw, (int, float)) or not 0 < lat_limit_raw <= 90:
            raise ValueError(f"Projection '{entry_id}' lat_limit must be in (0, 90]")
        return cls(
            id=entry_id.strip(),
            label=str(raw.get("label") or entry_id).strip(),
            group=str(raw.get("group") or family.label.title()).strip(),
            proj=proj.strip(),
            family=family,
            params={str(k): float(v) for k, v in params_raw.items()},
            clip_angle=float(clip_raw) if clip_raw is not None else None,
            lat_limit=float(lat_limit_raw),
        )


def _format_param(value: float) -> str:
    return f"{value:g}"


_AZ = ProjectionFamily.AZIMUTHAL
_CONIC = ProjectionFamily.CONIC
_MERC = ProjectionFamily.MERCATOR
_OTHER = ProjectionFamily.OTHER

DEFAULT_ENTRIES: tuple[CatalogEntry, ...] = (
    CatalogEntry("orthographic", "Orthographic", "Azimuthal", "ortho", _AZ, clip_angle=90.0),
    CatalogEntry("stereographic", "Stereographic", "Azimuthal", "stere", _AZ, clip_angle=142.0),
    CatalogEntry("gnomonic", "Gnomonic", "Azimuthal", "gnom", _AZ, clip_angle=60.0),
    CatalogEntry("azimuthal_equal_area", "Lambert Azimuthal Equal-Area", "Azimuthal", "laea", _AZ),
    CatalogEntry("azimuthal_equidistant", "Azimuthal Equidistant", "Azimuthal", "aeqd", _AZ),
    CatalogEntry("conic_equal_area", "Albers Equal-Area Conic", "Conic", "aea", _CONIC),
    CatalogEntry("conic_conformal", "Lambert Conformal Conic", "Conic", "lcc", _CONIC, lat_limit=80.0),
    CatalogEntry("conic_equidistant", "Equidistant Conic", "Conic", "eqdc", _CONIC),
    CatalogEntry("mercator", "Mercator", "Cylindrical", "merc", _MERC, lat_limit=85.0),
    CatalogEntry("transverse_mercator", "Transverse Mercator", "Cylindrical", "tmerc", _MERC),
    CatalogEntry("equirectangular", "Equirectangular (Plate Carrée)", "Cylindrical", "eqc", _OTHER),
    CatalogEntry("miller", "Miller Cylindrical", "Cylindrical", "mill", _OTHER),
    CatalogEntry("natural_earth", "Natural Earth", "Pseudo-cylindrical", "natearth", _OTHER),
    CatalogEntry("robinson", "Robinson", "Pseudo-cylindrical", "robin", _OTHER),
    CatalogEntry("mollweide", "Mollweide", "Pseudo-cylindrical", "moll", _OTHER),
    CatalogEntry("sinusoidal", "Sinusoidal", "Pseudo-cylindrical", "sinu", _OTHER),
    CatalogEntry("eckert4", "Eckert IV", "Pseudo-cylindrical", "eck4", _OTHER),
    CatalogEntry("equal_earth", "Equal Earth", "Pseudo-cylindrical", "eqearth", _OTHER),
    CatalogEntry("winkel_tripel", "Winkel Tripel", "Compromise", "wintri", _OTHER),
    CatalogEntry("hammer", "Hammer", "Compromise", "hammer", _OTHER),
)


class ProjectionCatalog:
    """Registry of projection ids to catalog entries."""

    def __init__(self, entries: Iterable[CatalogEntry] = DEFAULT_ENTRIES) -> None:
        self._entries: dict[str, CatalogEntry] = {}
        for entry in entries:
            self.register(entry)

    def register(self, entry: CatalogEntry) -> None:
        if entry.id in self._entries:
            raise ValueError(f"Duplicate projection id '{entry.id}'")
        self._entries[entry.id] = entry

    def get(self, projection_id: str) -> CatalogEntry:
        try:
            return self._entries[projection_id]
        except KeyError:
            raise UnknownProjectionError(projection_id, self._entries) from None

    def __contains__(self, projection_id: object) -> bool:
        return projection_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(self._entries)

    @property
    def entries(self) -> tuple[CatalogEntry, ...]:
        return tuple(self._entries.values())

    def grouped(self) -> dict[str, list[CatalogEntry]]:
        groups: dict[str, list[CatalogEntry]] = {}
        for entry in self._entries.values():
            groups.setdefault(entry.group, []).append(entry)
        return groups


@lru_cache(maxsize=64)
def _raw_transformer(definition: str) -> Transformer:
    return Transformer.from_crs(
        CRS.from_proj4(_GEOGRAPHIC_UNIT_SPHERE),
        CRS.from_proj4(definition),
        always_xy=True,
    )


@dataclass(frozen=True, slots=True)
class ConfiguredProjection:
    """A projection bound to translation, rotation and scale for one render."""

    entry: CatalogEntry
    rotation: Rotation
    scale: float
    translate: tuple[float, float]
    viewport: Viewport

    @property
    def id(self) -> str:
        return self.entry.id

    def rotate(self, lon: Any, lat: Any) -> tuple[np.ndarray, np.ndarray]:
        return spherical.rotate(lon, lat, self.rotation)

    def project_rotated(self, lon: Any, lat: Any) -> tuple[np.ndarray, np.ndarray]:
        """Map already-rotated coordinates to screen pixels (y down)."""
        transformer = _raw_transformer(self.entry.definition())
        x, y = transformer.transform(
            np.asarray(lon, dtype=float),
            np.asarray(lat, dtype=float),
            errcheck=False,
        )
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        tx, ty = self.translate
        return (tx + self.scale * x, ty - self.scale * y)

    def project(self, lon: Any, lat: Any) -> tuple[np.ndarray, np.ndarray]:
        rlon, rlat = self.rotate(lon, lat)
        return self.project_rotated(rlon, rlat)


class ProjectionFactory:
    """Build configured projections from an id, a rotation and a viewport."""

    def __init__(self, catalog: ProjectionCatalog | None = None) -> None:
        self.catalog = catalog if catalog is not None else ProjectionCatalog()

    def heuristic_scale(self, entry: CatalogEntry, viewport: Viewport) -> float:
        return viewport.min_side / entry.family.scale_divisor

    def build(
        self,
        projection_id: str,
        rotation: Rotation,
        viewport: Viewport,
        *,
        scale: float | None = None,
    ) -> ConfiguredProjection:
        entry = self.catalog.get(projection_id)
        chosen = self.heuristic_scale(entry, viewport) if scale is None else float(scale)
        if not chosen > 0.0:
            raise ValueError(f"Projection scale must be positive, got {chosen}")
        _LOGGER.debug(
            "Built %s (%s): rotation=%s scale=%.3f",
            entry.id,
            entry.family.label,
            rotation.as_tuple(),
            chosen,
        )
        return ConfiguredProjection(
            entry=entry,
            rotation=rotation,
            scale=chosen,
            translate=viewport.center,
            viewport=viewport,
        )


def catalog_from_config(extra: Sequence[Mapping[str, Any]]) -> ProjectionCatalog:
    catalog = ProjectionCatalog()
    for raw in extra:
        catalog.register(CatalogEntry.from_mapping(raw))
    return catalog
