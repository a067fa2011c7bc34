"""Geometry to screen-path conversion with spherical clipping."""

from __future__ import annotations

import math
from functools import lru_cache
from typing import Any, Iterable, Sequence

import numpy as np
from matplotlib.path import Path
from pyproj import CRS, Transformer
from shapely import affinity
from shapely.geometry import (
    GeometryCollection,
    LineString,
    MultiLineString,
    MultiPolygon,
    Point,
    Polygon,
    box,
)
from shapely.geometry.polygon import orient
from shapely.validation import make_valid

from . import spherical
from .projections import ConfiguredProjection


_EPS_DEG = 1e-6
_OUTLINE_STEP_DEG = 1.0
# Raw projected coordinates beyond this many sphere radii are treated as
# unprojectable (poles of Mercator-like projections, tmerc singularities).
_MAX_UNIT_EXTENT = 50.0
_CAP_CIRCLE_QUAD_SEGS = 64


class _Sphere:
    """Marker for the full-globe outline geometry."""

    def __repr__(self) -> str:
        return "SPHERE"


SPHERE = _Sphere()

_PixelBBox = tuple[float, float, float, float]


@lru_cache(maxsize=1)
def _aeqd_transformers() -> tuple[Transformer, Transformer]:
    geographic = CRS.from_proj4("+proj=longlat +R=1 +no_defs")
    plane = CRS.from_proj4("+proj=aeqd +R=1 +lat_0=0 +lon_0=0 +no_defs")
    return (
        Transformer.from_crs(geographic, plane, always_xy=True),
        Transformer.from_crs(plane, geographic, always_xy=True),
    )


class GeoPath:
    """Turn geographic geometries into matplotlib paths in logical pixels.

    Polygons become closed subpaths, lines open subpaths. Geometry is first
    rotated, then clipped either to the projection's spherical cap (clip
    angle set) or along the antimeridian of the rotated frame.
    """

    def __init__(self, projection: ConfiguredProjection) -> None:
        self.projection = projection

    def __call__(self, geometry: Any) -> Path | None:
        rings, lines = self._screen_parts(geometry)
        return _compound_path(rings, lines)

    def bounds(self, geometry: Any) -> _PixelBBox | None:
        rings, lines = self._screen_parts(geometry)
        parts = [*rings, *lines]
        if not parts:
            return None
        stacked = np.concatenate(parts, axis=0)
        x0, y0 = stacked.min(axis=0)
        x1, y1 = stacked.max(axis=0)
        return (float(x0), float(y0), float(x1), float(y1))

    def _screen_parts(self, geometry: Any) -> tuple[list[np.ndarray], list[np.ndarray]]:
        if geometry is SPHERE:
            clipped: Any = self._outline()
        else:
            if geometry is None or geometry.is_empty:
                return ([], [])
            clipped = self._clip(geometry)

        rings: list[np.ndarray] = []
        lines: list[np.ndarray] = []
        for polygon in spherical.iter_polygons(clipped):
            oriented = orient(polygon, sign=1.0)
            for ring in (oriented.exterior, *oriented.interiors):
                pieces = self._project_coords(ring.coords)
                if len(pieces) == 1 and len(pieces[0]) == len(ring.coords):
                    rings.append(pieces[0][:-1])
                else:
                    lines.extend(pieces)
        for line in _iter_lines(clipped):
            lines.extend(self._project_coords(line.coords))
        return (rings, lines)

    def _project_coords(self, coords: Sequence[tuple[float, ...]]) -> list[np.ndarray]:
        array = np.asarray([(c[0], c[1]) for c in coords], dtype=float)
        if len(array) < 2:
            return []
        x, y = self.projection.project_rotated(array[:, 0], array[:, 1])
        scale = self.projection.scale
        tx, ty = self.projection.translate
        limit = _MAX_UNIT_EXTENT * scale
        valid = (
            np.isfinite(x)
            & np.isfinite(y)
            & (np.abs(x - tx) <= limit)
            & (np.abs(y - ty) <= limit)
        )
        return _split_valid_runs(np.column_stack([x, y]), valid)

    def _outline(self) -> Polygon:
        entry = self.projection.entry
        if entry.clip_angle is not None:
            return spherical.geo_circle((0.0, 0.0), entry.clip_angle - _EPS_DEG, precision=_OUTLINE_STEP_DEG)
        lon_edge = 180.0 - _EPS_DEG
        lat_edge = entry.lat_limit
        lons = np.linspace(-lon_edge, lon_edge, int(2 * lon_edge / _OUTLINE_STEP_DEG) + 1)
        lats = np.linspace(-lat_edge, lat_edge, int(2 * lat_edge / _OUTLINE_STEP_DEG) + 1)
        coords: list[tuple[float, float]] = []
        coords.extend((float(lon), -lat_edge) for lon in lons)
        coords.extend((lon_edge, float(lat)) for lat in lats[1:])
        coords.extend((float(lon), lat_edge) for lon in lons[::-1][1:])
        coords.extend((-lon_edge, float(lat)) for lat in lats[::-1][1:])
        return Polygon(coords)

    def _clip(self, geometry: Any) -> Any:
        if self.projection.entry.clip_angle is not None:
            clipped = self._clip_to_cap(geometry)
        else:
            clipped = self._cut_antimeridian(geometry)
        # Clipping can leave slivers of lower dimension where edges touch the window.
        if _is_polygonal(geometry):
            return _collect(spherical.iter_polygons(clipped))
        return _collect(_iter_lines(clipped))

    def _clip_to_cap(self, geometry: Any) -> Any:
        forward, inverse = _aeqd_transformers()
        rotation = self.projection.rotation

        def plane_points(coords: Sequence[tuple[float, ...]]) -> tuple[np.ndarray, np.ndarray]:
            array = np.asarray([(c[0], c[1]) for c in coords], dtype=float)
            lon, lat = spherical.rotate(array[:, 0], array[:, 1], rotation)
            x, y = forward.transform(lon, lat, errcheck=False)
            points = np.column_stack([np.asarray(x, dtype=float), np.asarray(y, dtype=float)])
            # The antipode of the view centre has no azimuthal image.
            return (points, np.isfinite(points).all(axis=1))

        def ring_to_plane(coords: Sequence[tuple[float, ...]]) -> list[tuple[float, float]]:
            points, finite = plane_points(coords)
            return [(float(x), float(y)) for x, y in points[finite]]

        def line_to_plane(coords: Sequence[tuple[float, ...]]) -> list[list[tuple[float, float]]]:
            points, finite = plane_points(coords)
            return [[(float(x), float(y)) for x, y in run] for run in _split_valid_runs(points, finite)]

        radius = math.radians(self.projection.entry.clip_angle - _EPS_DEG)
        cap = Point(0.0, 0.0).buffer(radius, quad_segs=_CAP_CIRCLE_QUAD_SEGS)
        plane = _map_geometry(geometry, ring_to_plane, line_to_plane)
        clipped = _safe_intersection(plane, cap)

        def to_geographic(coords: Sequence[tuple[float, ...]]) -> list[tuple[float, float]]:
            array = np.asarray([(c[0], c[1]) for c in coords], dtype=float)
            lon, lat = inverse.transform(array[:, 0], array[:, 1], errcheck=False)
            return list(zip(np.asarray(lon).tolist(), np.asarray(lat).tolist()))

        return _map_geometry(clipped, to_geographic, lambda coords: [to_geographic(coords)])

    def _cut_antimeridian(self, geometry: Any) -> Any:
        rotation = self.projection.rotation
        lat_edge = self.projection.entry.lat_limit
        window = box(-180.0 + _EPS_DEG, -lat_edge, 180.0 - _EPS_DEG, lat_edge)

        def unwrap_ring(coords: Sequence[tuple[float, ...]]) -> list[tuple[float, float]]:
            lon, lat = _rotated_unwrapped(coords, rotation)
            if len(lon) >= 2 and abs(lon[-1] - lon[0]) > 180.0:
                # Ring winds around a pole: close it through that pole.
                pole = 90.0 if lat[int(np.argmax(np.abs(lat)))] > 0 else -90.0
                lon = np.concatenate([lon, [lon[-1], lon[0], lon[0]]])
                lat = np.concatenate([lat, [pole, pole, lat[0]]])
            return list(zip(lon.tolist(), lat.tolist()))

        def unwrap_line(coords: Sequence[tuple[float, ...]]) -> list[list[tuple[float, float]]]:
            lon, lat = _rotated_unwrapped(coords, rotation)
            return [list(zip(lon.tolist(), lat.tolist()))]

        unwrapped = _map_geometry(geometry, unwrap_ring, unwrap_line)
        parts: list[Any] = []
        for shift in (-720.0, -360.0, 0.0, 360.0, 720.0):
            piece = _safe_intersection(affinity.translate(unwrapped, xoff=shift), window)
            if not piece.is_empty:
                parts.append(piece)
        return _collect(parts)


def _rotated_unwrapped(coords: Sequence[tuple[float, ...]], rotation: Any) -> tuple[np.ndarray, np.ndarray]:
    array = np.asarray([(c[0], c[1]) for c in coords], dtype=float)
    if len(array) == 0:
        return (np.zeros(0), np.zeros(0))
    lon, lat = spherical.rotate(array[:, 0], array[:, 1], rotation)
    lon = np.degrees(np.unwrap(np.radians(lon)))
    return (lon, lat)


def _map_geometry(geometry: Any, ring_fn: Any, line_fn: Any) -> Any:
    """Rebuild a geometry with new coordinates per ring/line (lengths may change).

    ``line_fn`` returns a list of runs so a line can be split where it breaks.
    """
    if geometry is None or geometry.is_empty:
        return Polygon()
    kind = geometry.geom_type
    if kind == "Polygon":
        shell = ring_fn(geometry.exterior.coords)
        if len(shell) < 4:
            return Polygon()
        shell_poly = _valid_polygon(Polygon(shell))
        holes = [ring_fn(ring.coords) for ring in geometry.interiors]
        result = shell_poly
        for hole in holes:
            if len(hole) < 4:
                continue
            hole_poly = _valid_polygon(Polygon(_align_longitudes(hole, shell)))
            result = result.difference(hole_poly)
        return result
    if kind == "LineString":
        runs = [run for run in line_fn(geometry.coords) if len(run) >= 2]
        return _collect(LineString(run) for run in runs) if runs else LineString()
    if kind in ("MultiPolygon", "MultiLineString", "GeometryCollection"):
        return _collect([_map_geometry(part, ring_fn, line_fn) for part in geometry.geoms])
    return Polygon()


def _align_longitudes(
    hole: list[tuple[float, float]],
    shell: list[tuple[float, float]],
) -> list[tuple[float, float]]:
    shell_mean = float(np.mean([p[0] for p in shell]))
    hole_mean = float(np.mean([p[0] for p in hole]))
    shift = 360.0 * round((shell_mean - hole_mean) / 360.0)
    if shift == 0.0:
        return hole
    return [(x + shift, y) for x, y in hole]


def _valid_polygon(polygon: Polygon) -> Any:
    if polygon.is_valid:
        return polygon
    return _collect(list(spherical.iter_polygons(make_valid(polygon))))


def _safe_intersection(geometry: Any, window: Any) -> Any:
    if geometry.is_empty:
        return geometry
    if not geometry.is_valid:
        geometry = make_valid(geometry)
    return geometry.intersection(window)


def _is_polygonal(geometry: Any) -> bool:
    if geometry.geom_type in ("Polygon", "MultiPolygon"):
        return True
    if geometry.geom_type == "GeometryCollection":
        return any(_is_polygonal(part) for part in geometry.geoms)
    return False


def _collect(parts: Iterable[Any]) -> Any:
    flat: list[Any] = []
    for part in parts:
        if part is None or part.is_empty:
            continue
        if part.geom_type in ("MultiPolygon", "MultiLineString", "GeometryCollection"):
            flat.extend(g for g in part.geoms if not g.is_empty)
        else:
            flat.append(part)
    polygons = [g for g in flat if g.geom_type == "Polygon"]
    lines = [g for g in flat if g.geom_type == "LineString"]
    if polygons and not lines:
        return polygons[0] if len(polygons) == 1 else MultiPolygon(polygons)
    if lines and not polygons:
        return lines[0] if len(lines) == 1 else MultiLineString(lines)
    return GeometryCollection([*polygons, *lines])


def _iter_lines(geometry: Any) -> Iterable[LineString]:
    if geometry is None or geometry.is_empty:
        return
    kind = geometry.geom_type
    if kind in ("LineString", "LinearRing"):
        yield geometry
    elif kind in ("MultiLineString", "GeometryCollection"):
        for part in geometry.geoms:
            yield from _iter_lines(part)


def _split_valid_runs(points: np.ndarray, valid: np.ndarray) -> list[np.ndarray]:
    runs: list[np.ndarray] = []
    start: int | None = None
    for idx, ok in enumerate(valid.tolist()):
        if ok and start is None:
            start = idx
        elif not ok and start is not None:
            if idx - start >= 2:
                runs.append(points[start:idx])
            start = None
    if start is not None and len(points) - start >= 2:
        runs.append(points[start:])
    return runs


def _compound_path(rings: Sequence[np.ndarray], lines: Sequence[np.ndarray]) -> Path | None:
    vertices: list[np.ndarray] = []
    codes: list[np.ndarray] = []
    for ring in rings:
        if len(ring) < 3:
            continue
        vertices.append(np.vstack([ring, ring[:1]]))
        ring_codes = np.full(len(ring) + 1, Path.LINETO, dtype=Path.code_type)
        ring_codes[0] = Path.MOVETO
        ring_codes[-1] = Path.CLOSEPOLY
        codes.append(ring_codes)
    for line in lines:
        vertices.append(line)
        line_codes = np.full(len(line), Path.LINETO, dtype=Path.code_type)
        line_codes[0] = Path.MOVETO
        codes.append(line_codes)
    if not vertices:
        return None
    return Path(np.concatenate(vertices, axis=0), np.concatenate(codes))
