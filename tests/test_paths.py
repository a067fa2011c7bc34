from __future__ import annotations

import numpy as np
import pytest
from matplotlib.path import Path
from shapely.geometry import LineString, Polygon

from projview import spherical
from projview.models import Rotation
from projview.paths import SPHERE, GeoPath


@pytest.mark.parametrize("projection_id", ["orthographic", "stereographic", "gnomonic"])
def test_graticule_through_the_antipode_renders_in_cap_projections(factory, viewport, projection_id):
    # The 10 degree grid has a vertex at (180, 0), the antipode of the view centre.
    projection = factory.build(projection_id, Rotation(0.0, 0.0), viewport)

    path = GeoPath(projection)(spherical.graticule(10.0))

    assert path is not None
    assert np.isfinite(path.vertices).all()


def test_line_through_the_antipode_splits_instead_of_crossing_the_centre(factory, viewport):
    projection = factory.build("stereographic", Rotation(0.0, 0.0), viewport)
    line = LineString([(180.0, 45.0), (180.0, 42.0), (180.0, 0.0), (180.0, -42.0), (180.0, -45.0)])

    path = GeoPath(projection)(line)

    assert path is not None
    assert int(np.count_nonzero(path.codes == Path.MOVETO)) == 2
    tx, ty = projection.translate
    distances = np.hypot(path.vertices[:, 0] - tx, path.vertices[:, 1] - ty)
    assert distances.min() > projection.scale


def test_polygon_with_antipodal_vertex_keeps_its_visible_part(factory, viewport):
    projection = factory.build("stereographic", Rotation(0.0, 0.0), viewport)
    polygon = Polygon([(150.0, 30.0), (180.0, 0.0), (150.0, -30.0), (140.0, 0.0)])

    path = GeoPath(projection)(polygon)

    assert path is not None
    assert np.isfinite(path.vertices).all()


def test_far_side_feature_is_hidden_on_the_globe(factory, viewport):
    projection = factory.build("orthographic", Rotation(0.0, 0.0), viewport)

    assert GeoPath(projection)(Polygon([(170.0, -5.0), (175.0, -5.0), (175.0, 5.0), (170.0, 5.0)])) is None


def test_sphere_outline_is_a_single_closed_ring(factory, viewport):
    projection = factory.build("orthographic", Rotation(0.0, 0.0), viewport)

    path = GeoPath(projection)(SPHERE)

    assert path is not None
    assert int(np.count_nonzero(path.codes == Path.MOVETO)) == 1
    assert path.codes[-1] == Path.CLOSEPOLY
