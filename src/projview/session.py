"""Interactive session: input handlers feeding one synchronous render pipeline."""

from __future__ import annotations

import logging
from typing import Callable

from .config import AppConfig
from .framing import DegenerateGeometryError, FrameFitter
from .geometry import GeometrySource, LoadError
from .models import Feature, FeatureCollection, Resolution, Rotation, Viewport, ViewState
from .projections import (
    CatalogEntry,
    ConfiguredProjection,
    ProjectionFactory,
    UnknownProjectionError,
    catalog_from_config,
)
from .render import SceneRenderer, Surface
from .search import SearchIndex, SearchResult, SearchStatus


_LOGGER = logging.getLogger("projview.session")

LOADING_MESSAGE = "Loading map data..."


def build_frame(
    state: ViewState,
    factory: ProjectionFactory,
    fitter: FrameFitter,
) -> ConfiguredProjection:
    """Configure the projection for a state snapshot, auto-framing any focus."""
    if state.focused is not None:
        try:
            rotation, scale = fitter.fit(state.focused, state.viewport, projection_id=state.projection_id)
        except DegenerateGeometryError as exc:
            _LOGGER.warning("Focus framing skipped, using default framing: %s", exc)
        else:
            return factory.build(state.projection_id, rotation, state.viewport, scale=scale)
    return factory.build(state.projection_id, state.rotation, state.viewport)


class MapSession:
    """Owns the view state and re-renders once per input event.

    Handlers replace the state snapshot, then call `rebuild_and_render`.
    A resolution switch requested while another load is in flight is
    ignored. `on_loading` is called when a dataset load starts and again
    when it finishes, so a front end can paint the loading indicator.
    """

    def __init__(
        self,
        *,
        state: ViewState,
        source: GeometrySource,
        factory: ProjectionFactory,
        renderer: SceneRenderer,
        surface: Surface,
        search_index: SearchIndex | None = None,
    ) -> None:
        self.state = state
        self.source = source
        self.factory = factory
        self.fitter = FrameFitter(factory)
        self.renderer = renderer
        self.surface = surface
        self.search_index = search_index or SearchIndex()
        self.dataset: FeatureCollection | None = None
        self.loading = False
        self.message: str | None = None
        self.search_text = ""
        self.search_result = SearchResult(query="", status=SearchStatus.TOO_SHORT)
        self.render_count = 0
        self.on_loading: Callable[[MapSession], None] | None = None

    @classmethod
    def from_config(cls, cfg: AppConfig, surface: Surface) -> MapSession:
        """Wire a session from typed settings, starting from the configured view."""
        view = cfg.view
        return cls(
            state=ViewState(
                projection_id=view.projection,
                rotation=view.rotation,
                show_distortion=view.show_distortion,
                show_grid=view.show_grid,
                resolution=view.resolution,
                viewport=view.viewport,
            ),
            source=GeometrySource(cfg.datasets),
            factory=ProjectionFactory(catalog_from_config(cfg.projections)),
            renderer=SceneRenderer(cfg.style),
            surface=surface,
            search_index=SearchIndex(
                min_query_length=cfg.search.min_query_length,
                max_results=cfg.search.max_results,
            ),
        )

    def start(self) -> bool:
        """Load the initial resolution and draw the first frame."""
        self._load(self.state.resolution)
        return self.rebuild_and_render()

    def rebuild_and_render(self) -> bool:
        if self.dataset is None or self.loading:
            self.message = LOADING_MESSAGE if self.loading or self.message is None else self.message
            return False
        try:
            projection = build_frame(self.state, self.factory, self.fitter)
        except UnknownProjectionError as exc:
            self.message = str(exc)
            _LOGGER.warning("Render skipped: %s", exc)
            return False
        self.renderer.render(self.state, self.dataset, projection, self.surface)
        self.render_count += 1
        self.message = None
        return True

    def describe(self) -> CatalogEntry | None:
        try:
            return self.factory.catalog.get(self.state.projection_id)
        except UnknownProjectionError:
            return None

    def select_projection(self, projection_id: str) -> bool:
        self.state = self.state.evolve(projection_id=projection_id)
        return self.rebuild_and_render()

    def toggle_distortion(self) -> bool:
        self.state = self.state.evolve(show_distortion=not self.state.show_distortion)
        return self.rebuild_and_render()

    def toggle_grid(self) -> bool:
        self.state = self.state.evolve(show_grid=not self.state.show_grid)
        return self.rebuild_and_render()

    def set_rotation(self, lam: float, phi: float) -> bool:
        # Manual rotation takes over from an active focus.
        self.state = self.state.evolve(rotation=Rotation(lam, phi, 0.0), focused=None)
        return self.rebuild_and_render()

    def resize(self, width: float, height: float) -> bool:
        self.state = self.state.evolve(viewport=Viewport(width, height))
        return self.rebuild_and_render()

    def set_resolution(self, resolution: str | Resolution) -> bool:
        key = Resolution.parse(resolution)
        if self.loading:
            _LOGGER.info("Ignoring switch to %s: a dataset load is already in progress", key.value)
            return False
        if not self._load(key):
            return False
        focused = self.state.focused
        if focused is not None and self.dataset is not None:
            focused = self.dataset.find(focused.name)
        self.state = self.state.evolve(resolution=key, focused=focused)
        if self.search_text:
            self.search(self.search_text)
        return self.rebuild_and_render()

    def search(self, text: str) -> SearchResult:
        self.search_text = text
        features = self.dataset.features if self.dataset is not None else ()
        self.search_result = self.search_index.query(text, features)
        return self.search_result

    def focus(self, feature: Feature) -> bool:
        self.state = self.state.evolve(focused=feature)
        return self.rebuild_and_render()

    def focus_result(self, index: int) -> bool:
        features = self.search_result.features
        if not 0 <= index < len(features):
            raise IndexError(f"No search result at position {index}")
        return self.focus(features[index])

    def reset(self) -> bool:
        self.search_text = ""
        self.search_result = SearchResult(query="", status=SearchStatus.TOO_SHORT)
        self.state = self.state.evolve(focused=None)
        return self.rebuild_and_render()

    def _load(self, resolution: Resolution) -> bool:
        self.loading = True
        self.message = LOADING_MESSAGE
        self._notify_loading()
        dataset: FeatureCollection | None = None
        try:
            dataset = self.source.load(resolution)
        except LoadError as exc:
            _LOGGER.error("%s", exc)
            self.message = str(exc)
        finally:
            self.loading = False
        if dataset is not None:
            self.dataset = dataset
            self.message = None
        self._notify_loading()
        return dataset is not None

    def _notify_loading(self) -> None:
        if self.on_loading is not None:
            self.on_loading(self)
