"""Scene rendering: the fixed layer stack and the surfaces it is drawn on."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

import numpy as np
from matplotlib.colors import to_rgba
from matplotlib.path import Path

from . import spherical
from .config import LayerStyle, StyleConfig
from .models import FeatureCollection, Viewport, ViewState
from .paths import SPHERE, GeoPath
from .projections import ConfiguredProjection
from .util import log_elapsed


_LOGGER = logging.getLogger("projview.render")

LAYER_SPHERE = "sphere"
LAYER_GRID = "grid"
LAYER_LAND = "land"
LAYER_FOCUS = "focus"
LAYER_DISTORTION = "distortion"
LAYER_OUTLINE = "outline"

LAYER_ORDER: tuple[str, ...] = (
    LAYER_SPHERE,
    LAYER_GRID,
    LAYER_LAND,
    LAYER_FOCUS,
    LAYER_DISTORTION,
    LAYER_OUTLINE,
)


@dataclass(frozen=True, slots=True)
class _IndicatrixPolicy:
    lat_range: tuple[float, float]
    lat_step: float
    lon_range: tuple[float, float]
    lon_step: float
    radius_deg: float

    def centers(self) -> tuple[tuple[float, float], ...]:
        lats = np.arange(self.lat_range[0], self.lat_range[1] + self.lat_step / 2.0, self.lat_step)
        lons = np.arange(self.lon_range[0], self.lon_range[1] + self.lon_step / 2.0, self.lon_step)
        return tuple((float(lon), float(lat)) for lat in lats for lon in lons)


# Poles are skipped: circles there degenerate under most projections.
_INDICATRIX_POLICY = _IndicatrixPolicy(
    lat_range=(-60.0, 60.0),
    lat_step=15.0,
    lon_range=(-150.0, 150.0),
    lon_step=30.0,
    radius_deg=2.5,
)
_GRATICULE_STEP_DEG = 10.0


@dataclass(frozen=True, slots=True)
class DrawCommand:
    """One fill/stroke of a path. `path` is None when clipping removed everything."""

    path: Path | None
    style: LayerStyle


@dataclass(frozen=True, slots=True)
class Layer:
    name: str
    commands: tuple[DrawCommand, ...] = ()


class Surface(Protocol):
    def present(self, layers: Sequence[Layer], viewport: Viewport) -> None:
        """Clear the surface and draw `layers` in order as one visual update."""


class SceneRenderer:
    """Derive the six-layer scene from a state snapshot and draw it."""

    def __init__(self, style: StyleConfig) -> None:
        self.style = style
        self._graticule = spherical.graticule(_GRATICULE_STEP_DEG)
        self._indicatrices = tuple(
            spherical.geo_circle(center, _INDICATRIX_POLICY.radius_deg)
            for center in _INDICATRIX_POLICY.centers()
        )

    def render(
        self,
        state: ViewState,
        dataset: FeatureCollection,
        projection: ConfiguredProjection,
        surface: Surface,
    ) -> tuple[Layer, ...]:
        # Build everything before touching the surface so a failure leaves
        # the previous frame intact.
        with log_elapsed(_LOGGER, f"Built scene for {projection.id}"):
            layers = self.build_layers(state, dataset, projection)
        surface.present(layers, state.viewport)
        return layers

    def build_layers(
        self,
        state: ViewState,
        dataset: FeatureCollection,
        projection: ConfiguredProjection,
    ) -> tuple[Layer, ...]:
        geo_path = GeoPath(projection)
        style = self.style

        sphere = geo_path(SPHERE)
        layers = [Layer(LAYER_SPHERE, (DrawCommand(sphere, style.sphere),))]

        if state.show_grid:
            layers.append(Layer(LAYER_GRID, (DrawCommand(geo_path(self._graticule), style.grid),)))
        else:
            layers.append(Layer(LAYER_GRID))

        land_paths = [geo_path(feature.geometry) for feature in dataset.features]
        layers.append(Layer(LAYER_LAND, (DrawCommand(_combine(land_paths), style.land),)))

        if state.focused is not None:
            focus_path = geo_path(state.focused.geometry)
            layers.append(Layer(LAYER_FOCUS, (DrawCommand(focus_path, style.focus),)))
        else:
            layers.append(Layer(LAYER_FOCUS))

        if state.show_distortion:
            circles = tuple(
                DrawCommand(geo_path(circle), style.distortion) for circle in self._indicatrices
            )
            layers.append(Layer(LAYER_DISTORTION, circles))
        else:
            layers.append(Layer(LAYER_DISTORTION))

        layers.append(Layer(LAYER_OUTLINE, (DrawCommand(sphere, style.outline),)))
        return tuple(layers)


def _combine(paths: Sequence[Path | None]) -> Path | None:
    present = [path for path in paths if path is not None]
    if not present:
        return None
    return Path.make_compound_path(*present)


@dataclass(slots=True)
class RecordingSurface:
    """Surface that keeps the presented layers, for inspection and tests."""

    frames: list[tuple[Layer, ...]] = field(default_factory=list)
    viewports: list[Viewport] = field(default_factory=list)

    def present(self, layers: Sequence[Layer], viewport: Viewport) -> None:
        self.frames.append(tuple(layers))
        self.viewports.append(viewport)

    @property
    def last(self) -> tuple[Layer, ...]:
        if not self.frames:
            raise LookupError("Nothing has been presented yet")
        return self.frames[-1]


class MatplotlibSurface:
    """Draw layers into a matplotlib axes using logical-pixel coordinates.

    Device pixel ratio is handled by the figure DPI, so drawing code never
    sees physical pixels.
    """

    def __init__(self, ax: Any, *, background: str) -> None:
        self.ax = ax
        self.background = background

    @classmethod
    def offscreen(cls, viewport: Viewport, *, background: str, device_pixel_ratio: float = 1.0) -> MatplotlibSurface:
        from matplotlib.backends.backend_agg import FigureCanvasAgg
        from matplotlib.figure import Figure

        fig = Figure(
            figsize=(viewport.width / 100.0, viewport.height / 100.0),
            dpi=100.0 * device_pixel_ratio,
        )
        FigureCanvasAgg(fig)
        ax = fig.add_axes((0.0, 0.0, 1.0, 1.0))
        return cls(ax, background=background)

    @property
    def figure(self) -> Any:
        return self.ax.figure

    def present(self, layers: Sequence[Layer], viewport: Viewport) -> None:
        from matplotlib.patches import PathPatch

        ax = self.ax
        ax.cla()
        ax.set_xlim(0.0, viewport.width)
        ax.set_ylim(viewport.height, 0.0)
        ax.set_axis_off()
        ax.figure.patch.set_facecolor(self.background)
        ax.set_facecolor(self.background)
        for zorder, layer in enumerate(layers, start=1):
            for command in layer.commands:
                if command.path is None:
                    continue
                style = command.style
                ax.add_patch(
                    PathPatch(
                        command.path,
                        facecolor=to_rgba(style.fill, style.fill_alpha) if style.fill else "none",
                        edgecolor=to_rgba(style.stroke, style.stroke_alpha) if style.stroke else "none",
                        linewidth=style.line_width if style.stroke else 0.0,
                        zorder=zorder,
                    )
                )
        ax.figure.canvas.draw_idle()

    def to_rgba_array(self) -> np.ndarray:
        canvas = self.figure.canvas
        canvas.draw()
        return np.asarray(canvas.buffer_rgba()).copy()
