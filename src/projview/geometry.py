"""Region geometry dataset loading and process-wide caching."""

from __future__ import annotations

import json
import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Mapping

import requests

from .config import DatasetsConfig
from .models import Feature, FeatureCollection, Resolution
from .spherical import spherical_centroid
from .topology import TopologyError, decode_object


_LOGGER = logging.getLogger("projview.geometry")

# Keyed by (resolution, source). Slots are only ever assigned whole
# collections, never mutated in place.
_DATASET_CACHE: dict[tuple[Resolution, str], FeatureCollection] = {}
_CACHE_LOCK = threading.Lock()


class LoadError(RuntimeError):
    """Raised when a geometry dataset cannot be fetched or decoded."""

    def __init__(self, resolution: Resolution, source: str, reason: str) -> None:
        self.resolution = resolution
        self.source = source
        super().__init__(f"Failed loading {resolution.value} dataset from {source}: {reason}")


Fetcher = Callable[[str], bytes]


class GeometrySource:
    """Load topology datasets per resolution and decode them into features."""

    def __init__(
        self,
        cfg: DatasetsConfig,
        *,
        fetcher: Fetcher | None = None,
    ) -> None:
        self.cfg = cfg
        self._fetcher = fetcher or self._fetch
        self._session: requests.Session | None = None

    def source_for(self, resolution: Resolution) -> str:
        try:
            return self.cfg.sources[resolution]
        except KeyError:
            raise LoadError(resolution, "<unset>", "no source configured") from None

    def cached(self, resolution: str | Resolution) -> FeatureCollection | None:
        key = Resolution.parse(resolution)
        return _DATASET_CACHE.get((key, self.source_for(key)))

    def load(self, resolution: str | Resolution) -> FeatureCollection:
        """Return the decoded collection for `resolution`, fetching at most once."""
        key = Resolution.parse(resolution)
        source = self.source_for(key)
        cache_key = (key, source)
        cached = _DATASET_CACHE.get(cache_key)
        if cached is not None:
            _LOGGER.debug("Dataset cache hit for %s (%s)", key.value, source)
            return cached

        t0 = time.perf_counter()
        try:
            payload = self._fetcher(source)
        except (requests.RequestException, OSError) as exc:
            raise LoadError(key, source, str(exc)) from exc
        collection = self._decode(key, source, payload)

        with _CACHE_LOCK:
            collection = _DATASET_CACHE.setdefault(cache_key, collection)
        _LOGGER.info(
            "Loaded %s dataset from %s: %d features in %.2fs",
            key.value,
            source,
            len(collection),
            time.perf_counter() - t0,
        )
        return collection

    def _fetch(self, source: str) -> bytes:
        if source.startswith(("http://", "https://")):
            if self._session is None:
                self._session = requests.Session()
                self._session.headers.update({"User-Agent": self.cfg.user_agent})
            response = self._session.get(source, timeout=self.cfg.request_timeout_s)
            response.raise_for_status()
            return response.content
        return Path(source).read_bytes()

    def _decode(self, resolution: Resolution, source: str, payload: bytes) -> FeatureCollection:
        try:
            document = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise LoadError(resolution, source, f"invalid JSON: {exc}") from exc
        if not isinstance(document, Mapping):
            raise LoadError(resolution, source, "expected a JSON object at root")
        try:
            rows = decode_object(document, self.cfg.object_name)
        except TopologyError as exc:
            raise LoadError(resolution, source, str(exc)) from exc

        features = tuple(
            build_feature(properties, geometry, feature_id, name_property=self.cfg.name_property)
            for properties, geometry, feature_id in rows
        )
        return FeatureCollection(resolution=resolution, features=features, source=source)


def build_feature(
    properties: Mapping[str, Any],
    geometry: Any,
    feature_id: str | None,
    *,
    name_property: str = "name",
) -> Feature:
    """Create a feature with derived geographic bounds and spherical centroid."""
    raw_name = properties.get(name_property)
    name = str(raw_name).strip() if raw_name is not None else ""
    if not name:
        name = feature_id or "Unnamed"
    bounds: tuple[float, float, float, float] | None = None
    centroid: tuple[float, float] | None = None
    if geometry is not None and not geometry.is_empty:
        bounds = tuple(float(v) for v in geometry.bounds)  # type: ignore[assignment]
        centroid = spherical_centroid(geometry)
    return Feature(
        name=name,
        geometry=geometry,
        bounds=bounds,
        centroid=centroid,
        feature_id=feature_id,
        properties=dict(properties),
    )
