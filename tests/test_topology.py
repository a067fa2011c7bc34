from __future__ import annotations

import pytest

from projview.topology import TopologyError, decode_object


def test_decodes_named_polygons(topology) -> None:
    rows = decode_object(topology, "countries")

    assert [props["name"] for props, _geom, _id in rows] == [
        "France",
        "French Guiana",
        "Germany",
        "Brazil",
    ]
    _props, france, feature_id = rows[0]
    assert feature_id == "0"
    assert france.geom_type == "Polygon"
    assert france.bounds == (-5.0, 42.0, 8.0, 51.0)


def test_quantized_arcs_are_delta_decoded_and_shared() -> None:
    topology = {
        "type": "Topology",
        "transform": {"scale": [0.5, 0.25], "translate": [10.0, 20.0]},
        "arcs": [
            [[0, 0], [4, 0], [0, 4]],
            [[4, 4], [-4, 0], [0, -4]],
        ],
        "objects": {
            "land": {
                "type": "GeometryCollection",
                "geometries": [
                    {"type": "Polygon", "arcs": [[0, 1]], "properties": {"name": "Block"}},
                    {"type": "LineString", "arcs": [~1], "properties": {"name": "Edge"}},
                ],
            }
        },
    }

    rows = decode_object(topology, "land")

    block = rows[0][1]
    assert list(block.exterior.coords) == [
        (10.0, 20.0),
        (12.0, 20.0),
        (12.0, 21.0),
        (10.0, 21.0),
        (10.0, 20.0),
    ]
    edge = rows[1][1]
    assert list(edge.coords) == [(10.0, 20.0), (10.0, 21.0), (12.0, 21.0)]


def test_null_geometry_member_is_kept_without_shape() -> None:
    topology = {
        "type": "Topology",
        "arcs": [],
        "objects": {"countries": {"type": "GeometryCollection", "geometries": [{"type": None, "properties": {"name": "Nowhere"}}]}},
    }

    rows = decode_object(topology, "countries")

    assert rows == [({"name": "Nowhere"}, None, None)]


def test_missing_object_lists_available_names(topology) -> None:
    with pytest.raises(TopologyError, match="Available: countries"):
        decode_object(topology, "land")


@pytest.mark.parametrize(
    "document",
    [
        {"type": "FeatureCollection"},
        {"type": "Topology", "arcs": []},
        {"type": "Topology", "objects": {"countries": {"type": "Polygon", "arcs": [[0]]}}},
        {"type": "Topology", "arcs": [], "objects": {"countries": {"type": "Polygon", "arcs": [[3]]}}},
    ],
)
def test_malformed_documents_raise(document) -> None:
    with pytest.raises(TopologyError):
        decode_object(document, "countries")
