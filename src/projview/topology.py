"""TopoJSON decoding into shapely geometries."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from shapely.geometry import shape


class TopologyError(ValueError):
    """Raised when a topology document is malformed."""


Point = tuple[float, float]


def decode_object(topology: Mapping[str, Any], object_name: str) -> list[tuple[Mapping[str, Any], Any, str | None]]:
    """Decode one named topology object into (properties, geometry, id) rows.

    Geometry collections are flattened into one row per member, the same way
    a feature collection is produced from a topology object.
    """
    if topology.get("type") != "Topology":
        raise TopologyError("Expected a document with type 'Topology'")
    objects = topology.get("objects")
    if not isinstance(objects, Mapping):
        raise TopologyError("Topology is missing an 'objects' mapping")
    obj = objects.get(object_name)
    if not isinstance(obj, Mapping):
        available = ", ".join(sorted(str(key) for key in objects))
        raise TopologyError(f"Topology has no object '{object_name}'. Available: {available}")

    arcs = _decode_arcs(topology)
    if obj.get("type") == "GeometryCollection":
        members = obj.get("geometries")
        if not isinstance(members, list):
            raise TopologyError(f"Object '{object_name}' has no 'geometries' list")
    else:
        members = [obj]

    rows: list[tuple[Mapping[str, Any], Any, str | None]] = []
    for member in members:
        if not isinstance(member, Mapping):
            raise TopologyError(f"Expected mapping inside object '{object_name}'")
        properties = member.get("properties") or {}
        if not isinstance(properties, Mapping):
            raise TopologyError("Geometry 'properties' must be a mapping")
        geojson = _geometry(member, arcs)
        geometry = shape(geojson) if geojson is not None else None
        raw_id = member.get("id")
        rows.append((properties, geometry, str(raw_id) if raw_id is not None else None))
    return rows


def _decode_arcs(topology: Mapping[str, Any]) -> list[list[Point]]:
    raw_arcs = topology.get("arcs")
    if not isinstance(raw_arcs, list):
        raise TopologyError("Topology is missing an 'arcs' list")

    transform = topology.get("transform")
    scale: Sequence[float] | None = None
    translate: Sequence[float] | None = None
    if transform is not None:
        if not isinstance(transform, Mapping):
            raise TopologyError("Topology 'transform' must be a mapping")
        scale = transform.get("scale")
        translate = transform.get("translate")
        if not _is_pair(scale) or not _is_pair(translate):
            raise TopologyError("Topology transform needs numeric 'scale' and 'translate' pairs")

    arcs: list[list[Point]] = []
    for idx, arc in enumerate(raw_arcs):
        if not isinstance(arc, list):
            raise TopologyError(f"Arc {idx} is not a list of positions")
        points: list[Point] = []
        x = y = 0.0
        for position in arc:
            if not isinstance(position, list) or len(position) < 2:
                raise TopologyError(f"Arc {idx} has an invalid position")
            if scale is not None and translate is not None:
                # Quantized arcs are delta-encoded.
                x += position[0]
                y += position[1]
                points.append((x * scale[0] + translate[0], y * scale[1] + translate[1]))
            else:
                points.append((float(position[0]), float(position[1])))
        arcs.append(points)
    return arcs


def _is_pair(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and all(isinstance(item, (int, float)) for item in value)
    )


def _arc(arcs: list[list[Point]], index: int) -> list[Point]:
    real = ~index if index < 0 else index
    if real >= len(arcs):
        raise TopologyError(f"Arc index {index} out of range")
    points = arcs[real]
    return list(reversed(points)) if index < 0 else list(points)


def _line(arcs: list[list[Point]], indexes: Sequence[int]) -> list[Point]:
    points: list[Point] = []
    for k, index in enumerate(indexes):
        if not isinstance(index, int):
            raise TopologyError("Arc references must be integers")
        segment = _arc(arcs, index)
        if k and points:
            points.pop()
        points.extend(segment)
    if len(points) < 2 and points:
        points.append(points[0])
    return points


def _ring(arcs: list[list[Point]], indexes: Sequence[int]) -> list[Point]:
    points = _line(arcs, indexes)
    while 0 < len(points) < 4:
        points.append(points[0])
    return points


def _geometry(obj: Mapping[str, Any], arcs: list[list[Point]]) -> dict[str, Any] | None:
    kind = obj.get("type")
    if kind is None:
        return None
    data = obj.get("arcs")
    if kind == "Point":
        return {"type": "Point", "coordinates": obj.get("coordinates")}
    if kind == "MultiPoint":
        return {"type": "MultiPoint", "coordinates": obj.get("coordinates")}
    if kind == "LineString":
        return {"type": "LineString", "coordinates": _line(arcs, data or [])}
    if kind == "MultiLineString":
        return {"type": "MultiLineString", "coordinates": [_line(arcs, part) for part in data or []]}
    if kind == "Polygon":
        return {"type": "Polygon", "coordinates": [_ring(arcs, ring) for ring in data or []]}
    if kind == "MultiPolygon":
        return {
            "type": "MultiPolygon",
            "coordinates": [[_ring(arcs, ring) for ring in polygon] for polygon in data or []],
        }
    if kind == "GeometryCollection":
        members = [_geometry(member, arcs) for member in obj.get("geometries") or []]
        return {"type": "GeometryCollection", "geometries": [m for m in members if m is not None]}
    raise TopologyError(f"Unsupported topology geometry type: {kind}")
