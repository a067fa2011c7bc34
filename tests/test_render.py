from __future__ import annotations

import numpy as np
import pytest

from projview.config import default_config
from projview.models import Rotation, Viewport, ViewState
from projview.render import (
    LAYER_DISTORTION,
    LAYER_FOCUS,
    LAYER_GRID,
    LAYER_ORDER,
    MatplotlibSurface,
    RecordingSurface,
)


def _layers_by_name(layers):
    return {layer.name: layer for layer in layers}


@pytest.fixture
def dataset(source):
    return source.load("coarse")


def test_layers_are_emitted_in_fixed_order(factory, renderer, dataset) -> None:
    state = ViewState(projection_id="robinson", viewport=Viewport(400.0, 300.0))
    projection = factory.build(state.projection_id, state.rotation, state.viewport)

    layers = renderer.build_layers(state, dataset, projection)

    assert tuple(layer.name for layer in layers) == LAYER_ORDER
    by_name = _layers_by_name(layers)
    assert by_name[LAYER_FOCUS].commands == ()
    assert len(by_name[LAYER_GRID].commands) == 1


def test_indicatrix_circles_are_always_recorded(factory, renderer, dataset) -> None:
    state = ViewState(projection_id="orthographic", rotation=Rotation(10.0, -20.0, 0.0))
    projection = factory.build(state.projection_id, state.rotation, state.viewport)

    layers = renderer.build_layers(state, dataset, projection)

    circles = _layers_by_name(layers)[LAYER_DISTORTION].commands
    assert len(circles) == 99
    drawn = [command for command in circles if command.path is not None]
    assert 0 < len(drawn) < 99


@pytest.mark.parametrize("projection_id", ["robinson", "mercator", "conic_equal_area"])
def test_indicatrix_circles_all_drawn_on_world_projections(factory, renderer, dataset, projection_id) -> None:
    state = ViewState(projection_id=projection_id)
    projection = factory.build(state.projection_id, state.rotation, state.viewport)

    circles = _layers_by_name(renderer.build_layers(state, dataset, projection))[LAYER_DISTORTION].commands

    assert len(circles) == 99
    assert all(command.path is not None for command in circles)


def test_disabled_overlays_leave_empty_layers(factory, renderer, dataset) -> None:
    state = ViewState(projection_id="orthographic", show_grid=False, show_distortion=False)
    projection = factory.build(state.projection_id, state.rotation, state.viewport)

    layers = renderer.build_layers(state, dataset, projection)

    assert len(layers) == len(LAYER_ORDER)
    by_name = _layers_by_name(layers)
    assert by_name[LAYER_GRID].commands == ()
    assert by_name[LAYER_DISTORTION].commands == ()


def test_focus_layer_draws_focused_feature(factory, renderer, dataset) -> None:
    state = ViewState(projection_id="orthographic", focused=dataset.find("Germany"))
    projection = factory.build(state.projection_id, state.rotation, state.viewport)

    focus = _layers_by_name(renderer.build_layers(state, dataset, projection))[LAYER_FOCUS]

    assert len(focus.commands) == 1
    assert focus.commands[0].path is not None


def test_render_presents_once_per_call(factory, renderer, dataset) -> None:
    surface = RecordingSurface()
    state = ViewState(projection_id="mollweide", viewport=Viewport(320.0, 200.0))
    projection = factory.build(state.projection_id, state.rotation, state.viewport)

    layers = renderer.render(state, dataset, projection, surface)

    assert surface.frames == [layers]
    assert surface.viewports == [Viewport(320.0, 200.0)]


def test_identical_state_renders_identical_pixels(factory, renderer, dataset) -> None:
    viewport = Viewport(240.0, 160.0)
    state = ViewState(projection_id="orthographic", rotation=Rotation(-10.0, -40.0), viewport=viewport)
    projection = factory.build(state.projection_id, state.rotation, state.viewport)
    surface = MatplotlibSurface.offscreen(viewport, background=default_config().style.canvas)

    renderer.render(state, dataset, projection, surface)
    first = surface.to_rgba_array()
    renderer.render(state, dataset, projection, surface)
    second = surface.to_rgba_array()

    assert first.shape == (160, 240, 4)
    assert np.array_equal(first, second)


def test_grid_toggle_round_trip_restores_pixels(make_session) -> None:
    viewport = Viewport(240.0, 160.0)
    surface = MatplotlibSurface.offscreen(viewport, background=default_config().style.canvas)
    session = make_session(surface, viewport=viewport, projection_id="robinson")
    assert session.start()
    before = surface.to_rgba_array()

    session.toggle_grid()
    without_grid = surface.to_rgba_array()
    session.toggle_grid()
    after = surface.to_rgba_array()

    assert not np.array_equal(before, without_grid)
    assert np.array_equal(before, after)


def test_device_pixel_ratio_scales_backing_store_only() -> None:
    viewport = Viewport(200.0, 100.0)
    surface = MatplotlibSurface.offscreen(viewport, background="#000000", device_pixel_ratio=2.0)

    surface.present((), viewport)

    assert surface.to_rgba_array().shape == (200, 400, 4)
    assert surface.ax.get_xlim() == (0.0, 200.0)
    assert surface.ax.get_ylim() == (100.0, 0.0)
