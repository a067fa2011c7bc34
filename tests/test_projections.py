from __future__ import annotations

import numpy as np
import pytest

from projview.models import Rotation, Viewport
from projview.projections import (
    DEFAULT_ENTRIES,
    CatalogEntry,
    ProjectionCatalog,
    ProjectionFactory,
    ProjectionFamily,
    UnknownProjectionError,
    catalog_from_config,
    infer_family,
)

VIEWPORTS = [Viewport(960.0, 600.0), Viewport(320.0, 480.0), Viewport(1.0, 1.0)]


@pytest.mark.parametrize("viewport", VIEWPORTS)
@pytest.mark.parametrize("entry", DEFAULT_ENTRIES, ids=lambda entry: entry.id)
def test_every_projection_builds_with_positive_scale(factory, entry, viewport) -> None:
    projection = factory.build(entry.id, Rotation(30.0, -15.0), viewport)

    assert projection.scale > 0.0
    assert projection.translate == viewport.center
    x, y = projection.project_rotated(0.0, 0.0)
    assert np.isfinite(x) and np.isfinite(y)


@pytest.mark.parametrize(
    ("projection_id", "divisor"),
    [
        ("orthographic", 2.2),
        ("azimuthal_equal_area", 2.2),
        ("conic_conformal", 4.5),
        ("mercator", 6.5),
        ("transverse_mercator", 6.5),
        ("robinson", 5.5),
        ("natural_earth", 5.5),
    ],
)
def test_heuristic_scale_uses_family_divisor(factory, projection_id, divisor) -> None:
    projection = factory.build(projection_id, Rotation(), Viewport(960.0, 600.0))

    assert projection.scale == pytest.approx(600.0 / divisor)


def test_explicit_scale_overrides_heuristic(factory) -> None:
    projection = factory.build("robinson", Rotation(), Viewport(960.0, 600.0), scale=321.0)

    assert projection.scale == 321.0


def test_non_positive_scale_is_rejected(factory) -> None:
    with pytest.raises(ValueError, match="positive"):
        factory.build("robinson", Rotation(), Viewport(960.0, 600.0), scale=0.0)


@pytest.mark.parametrize(
    ("projection_id", "family"),
    [
        ("orthographic", ProjectionFamily.AZIMUTHAL),
        ("conic_azimuthal", ProjectionFamily.AZIMUTHAL),
        ("conic_equal_area", ProjectionFamily.CONIC),
        ("mercator_conic", ProjectionFamily.CONIC),
        ("transverse_mercator", ProjectionFamily.MERCATOR),
        ("Gnomonic", ProjectionFamily.AZIMUTHAL),
        ("winkel_tripel", ProjectionFamily.OTHER),
    ],
)
def test_family_inference_precedence(projection_id, family) -> None:
    assert infer_family(projection_id) is family


def test_catalog_families_match_inference() -> None:
    for entry in DEFAULT_ENTRIES:
        assert entry.family is infer_family(entry.id), entry.id


def test_conic_definition_forces_standard_parallels() -> None:
    entry = ProjectionCatalog().get("conic_equidistant")

    definition = entry.definition()

    assert "+lat_1=20" in definition
    assert "+lat_2=50" in definition
    assert definition.startswith("+proj=eqdc +R=1 ")


def test_mercator_family_pins_base_rotation() -> None:
    entry = CatalogEntry("mercator", "Mercator", "Cylindrical", "merc", ProjectionFamily.MERCATOR, params={"lon_0": 40.0})

    assert "+lon_0=0" in entry.definition()
    assert "+lat_0=0" in entry.definition()


def test_unknown_projection_lists_known_ids(factory) -> None:
    with pytest.raises(UnknownProjectionError) as excinfo:
        factory.build("dymaxion", Rotation(), Viewport(960.0, 600.0))

    assert excinfo.value.projection_id == "dymaxion"
    assert "orthographic" in str(excinfo.value)
    assert isinstance(excinfo.value, LookupError)


def test_rotation_centres_the_given_point(factory) -> None:
    viewport = Viewport(500.0, 500.0)
    projection = factory.build("orthographic", Rotation(-2.0, -46.0), viewport)

    x, y = projection.project(2.0, 46.0)

    assert float(x) == pytest.approx(250.0, abs=1e-6)
    assert float(y) == pytest.approx(250.0, abs=1e-6)


def test_screen_y_grows_downwards(factory) -> None:
    projection = factory.build("equirectangular", Rotation(), Viewport(400.0, 400.0))

    _x, y_north = projection.project(0.0, 45.0)
    _x, y_south = projection.project(0.0, -45.0)

    assert float(y_north) < 200.0 < float(y_south)


def test_config_projections_extend_catalog() -> None:
    catalog = catalog_from_config([{"id": "van_der_grinten", "proj": "vandg"}])

    entry = catalog.get("van_der_grinten")
    assert entry.family is ProjectionFamily.OTHER
    assert entry.group == "Other"
    assert len(catalog) == len(DEFAULT_ENTRIES) + 1


def test_duplicate_config_projection_is_rejected() -> None:
    with pytest.raises(ValueError, match="Duplicate"):
        catalog_from_config([{"id": "robinson", "proj": "robin"}])


def test_grouped_keeps_catalog_order() -> None:
    groups = ProjectionCatalog().grouped()

    assert list(groups)[0] == "Azimuthal"
    assert [entry.id for entry in groups["Conic"]] == [
        "conic_equal_area",
        "conic_conformal",
        "conic_equidistant",
    ]
