from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from projview import geometry
from projview.config import DatasetsConfig, default_config
from projview.models import Resolution, Viewport, ViewState
from projview.projections import ProjectionFactory
from projview.render import RecordingSurface, SceneRenderer
from projview.search import SearchIndex
from projview.session import MapSession


def _square(lon0: float, lat0: float, lon1: float, lat1: float) -> list[list[float]]:
    return [[lon0, lat0], [lon1, lat0], [lon1, lat1], [lon0, lat1], [lon0, lat0]]


REGIONS: dict[str, tuple[float, float, float, float]] = {
    "France": (-5.0, 42.0, 8.0, 51.0),
    "French Guiana": (-54.5, 2.0, -51.5, 5.5),
    "Germany": (6.0, 47.0, 15.0, 55.0),
    "Brazil": (-73.0, -33.0, -35.0, 5.0),
}


def make_topology(regions: dict[str, tuple[float, float, float, float]] = REGIONS) -> dict[str, Any]:
    arcs: list[list[list[float]]] = []
    members: list[dict[str, Any]] = []
    for idx, (name, box) in enumerate(regions.items()):
        arcs.append(_square(*box))
        members.append(
            {"type": "Polygon", "arcs": [[idx]], "id": str(idx), "properties": {"name": name}}
        )
    return {
        "type": "Topology",
        "objects": {"countries": {"type": "GeometryCollection", "geometries": members}},
        "arcs": arcs,
    }


@pytest.fixture(autouse=True)
def _clear_dataset_cache() -> None:
    geometry._DATASET_CACHE.clear()


@pytest.fixture
def topology() -> dict[str, Any]:
    return make_topology()


@pytest.fixture
def fine_topology() -> dict[str, Any]:
    regions = dict(REGIONS)
    regions["Fiji"] = (177.0, -19.0, 179.5, -16.0)
    return make_topology(regions)


@pytest.fixture
def datasets_cfg(tmp_path: Path, topology: dict[str, Any], fine_topology: dict[str, Any]) -> DatasetsConfig:
    coarse = tmp_path / "coarse.json"
    fine = tmp_path / "fine.json"
    coarse.write_text(json.dumps(topology), encoding="utf-8")
    fine.write_text(json.dumps(fine_topology), encoding="utf-8")
    return DatasetsConfig(
        sources={Resolution.COARSE: str(coarse), Resolution.FINE: str(fine)},
        object_name="countries",
        name_property="name",
        request_timeout_s=5,
        user_agent="projview-tests",
    )


class CountingFetcher:
    """Reads local files and counts how often each source was fetched."""

    def __init__(self, hook: Callable[[str], None] | None = None) -> None:
        self.calls: list[str] = []
        self.hook = hook

    def __call__(self, source: str) -> bytes:
        self.calls.append(source)
        if self.hook is not None:
            self.hook(source)
        return Path(source).read_bytes()


@pytest.fixture
def fetcher() -> CountingFetcher:
    return CountingFetcher()


@pytest.fixture
def source(datasets_cfg: DatasetsConfig, fetcher: CountingFetcher) -> geometry.GeometrySource:
    return geometry.GeometrySource(datasets_cfg, fetcher=fetcher)


@pytest.fixture
def factory() -> ProjectionFactory:
    return ProjectionFactory()


@pytest.fixture
def renderer() -> SceneRenderer:
    return SceneRenderer(default_config().style)


@pytest.fixture
def viewport() -> Viewport:
    return Viewport(400.0, 300.0)


@pytest.fixture
def make_session(
    source: geometry.GeometrySource,
    factory: ProjectionFactory,
    renderer: SceneRenderer,
    viewport: Viewport,
) -> Callable[..., MapSession]:
    def build(surface: Any = None, **state_changes: Any) -> MapSession:
        state = ViewState(projection_id="orthographic", viewport=viewport).evolve(**state_changes)
        return MapSession(
            state=state,
            source=source,
            factory=factory,
            renderer=renderer,
            surface=surface if surface is not None else RecordingSurface(),
            search_index=SearchIndex(),
        )

    return build
