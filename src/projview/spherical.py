"""Spherical geometry helpers: rotation, centroid, small circles, graticule."""

from __future__ import annotations

from typing import Any, Iterable

import numpy as np
from shapely.geometry import LineString, MultiLineString, Polygon

from .models import Rotation


_EPSILON2 = 1e-12


def rotate(lon: Any, lat: Any, rotation: Rotation) -> tuple[np.ndarray, np.ndarray]:
    """Rotate geographic coordinates (degrees) by (lambda, phi, gamma).

    The longitude shift is applied first, then the rotation about the
    y-axis (phi) and the x-axis (gamma).
    """
    lam = np.radians(np.asarray(lon, dtype=float)) + np.radians(rotation.lam)
    lam = (lam + np.pi) % (2.0 * np.pi) - np.pi
    phi = np.radians(np.asarray(lat, dtype=float))

    d_phi = np.radians(rotation.phi)
    d_gamma = np.radians(rotation.gamma)
    if d_phi == 0.0 and d_gamma == 0.0:
        return (np.degrees(lam), np.degrees(phi))

    cos_d_phi, sin_d_phi = np.cos(d_phi), np.sin(d_phi)
    cos_d_gamma, sin_d_gamma = np.cos(d_gamma), np.sin(d_gamma)
    cos_phi = np.cos(phi)
    x = np.cos(lam) * cos_phi
    y = np.sin(lam) * cos_phi
    z = np.sin(phi)
    k = z * cos_d_phi + x * sin_d_phi
    out_lam = np.arctan2(y * cos_d_gamma - k * sin_d_gamma, x * cos_d_phi - z * sin_d_phi)
    out_phi = np.arcsin(np.clip(k * cos_d_gamma + y * sin_d_gamma, -1.0, 1.0))
    return (np.degrees(out_lam), np.degrees(out_phi))


def to_cartesian(lon: Any, lat: Any) -> np.ndarray:
    lam = np.radians(np.asarray(lon, dtype=float))
    phi = np.radians(np.asarray(lat, dtype=float))
    cos_phi = np.cos(phi)
    return np.stack([cos_phi * np.cos(lam), cos_phi * np.sin(lam), np.sin(phi)], axis=-1)


def spherical_centroid(geometry: Any) -> tuple[float, float] | None:
    """Area-weighted centroid of a (multi)polygon on the sphere.

    Falls back to the length-weighted centroid of the boundary when the
    area term vanishes. Ring winding does not matter: each ring's area
    vector is oriented towards its own boundary centroid.
    """
    polygons = list(iter_polygons(geometry))
    if not polygons:
        return None

    area_total = np.zeros(3)
    line_total = np.zeros(3)
    for polygon in polygons:
        shell_area, shell_line = _ring_vectors(polygon.exterior.coords)
        area_total += shell_area
        line_total += shell_line
        for interior in polygon.interiors:
            hole_area, hole_line = _ring_vectors(interior.coords)
            area_total -= hole_area
            line_total += hole_line

    total = area_total
    if float(total @ total) < _EPSILON2:
        total = line_total
    norm = float(np.linalg.norm(total))
    if norm < _EPSILON2:
        return None
    x, y, z = total / norm
    return (float(np.degrees(np.arctan2(y, x))), float(np.degrees(np.arcsin(np.clip(z, -1.0, 1.0)))))


def _ring_vectors(coords: Iterable[tuple[float, ...]]) -> tuple[np.ndarray, np.ndarray]:
    array = np.asarray([(c[0], c[1]) for c in coords], dtype=float)
    if len(array) < 2:
        return (np.zeros(3), np.zeros(3))
    points = to_cartesian(array[:, 0], array[:, 1])
    start, end = points[:-1], points[1:]
    cross = np.cross(start, end)
    m = np.linalg.norm(cross, axis=1)
    dot = np.einsum("ij,ij->i", start, end)
    angle = np.arctan2(m, dot)
    with np.errstate(divide="ignore", invalid="ignore"):
        weight = np.where(m > 0.0, -angle / m, 0.0)
    area_vector = (weight[:, None] * cross).sum(axis=0)
    line_vector = (angle[:, None] * (start + end)).sum(axis=0)
    if float(area_vector @ line_vector) < 0.0:
        area_vector = -area_vector
    return (area_vector, line_vector)


def iter_polygons(geometry: Any) -> Iterable[Polygon]:
    if geometry is None or geometry.is_empty:
        return
    kind = geometry.geom_type
    if kind == "Polygon":
        yield geometry
    elif kind in ("MultiPolygon", "GeometryCollection"):
        for part in geometry.geoms:
            yield from iter_polygons(part)


def destination(lon: float, lat: float, radius: float, bearings: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Points at angular distance `radius` (degrees) from (lon, lat) along bearings."""
    lam0, phi0 = np.radians(lon), np.radians(lat)
    r = np.radians(radius)
    theta = np.radians(bearings)
    phi = np.arcsin(
        np.clip(np.sin(phi0) * np.cos(r) + np.cos(phi0) * np.sin(r) * np.cos(theta), -1.0, 1.0)
    )
    lam = lam0 + np.arctan2(
        np.sin(theta) * np.sin(r) * np.cos(phi0),
        np.cos(r) - np.sin(phi0) * np.sin(phi),
    )
    lam = (lam + np.pi) % (2.0 * np.pi) - np.pi
    return (np.degrees(lam), np.degrees(phi))


def geo_circle(center: tuple[float, float], radius: float, precision: float = 6.0) -> Polygon:
    """Small circle of angular `radius` degrees around `center` as a polygon."""
    steps = max(int(round(360.0 / precision)), 3)
    bearings = np.linspace(0.0, 360.0, steps, endpoint=False)
    lon, lat = destination(center[0], center[1], radius, bearings)
    return Polygon(list(zip(lon.tolist(), lat.tolist())))


def graticule(step: float = 10.0, precision: float = 2.5) -> MultiLineString:
    """Meridians and parallels every `step` degrees.

    Meridians at multiples of 90 degrees run pole to pole; the others stop at
    80 degrees so lines do not converge into a blot at the poles.
    """
    lines: list[LineString] = []
    for lon in np.arange(-180.0, 180.0, step):
        extent = 90.0 if lon % 90.0 == 0.0 else 80.0
        lats = np.arange(-extent, extent + precision / 2.0, precision)
        lines.append(LineString([(float(lon), float(lat)) for lat in lats]))
    for lat in np.arange(-80.0, 80.0 + step / 2.0, step):
        lons = np.arange(-180.0, 180.0 + precision / 2.0, precision)
        lines.append(LineString([(float(lon), float(lat)) for lon in lons]))
    return MultiLineString(lines)
