"""Auto-framing of a focused feature: centre on its centroid, fit with padding."""

from __future__ import annotations

import logging
import math

from .models import Feature, Rotation, Viewport
from .paths import GeoPath
from .projections import ProjectionFactory


_LOGGER = logging.getLogger("projview.framing")

REFERENCE_SCALE = 100.0
PADDING_FACTOR = 0.8


class DegenerateGeometryError(ValueError):
    """Raised when a feature has no usable extent to frame."""


class FrameFitter:
    """Compute the rotation and scale that centre and fit one feature.

    Bounding boxes of features that straddle the antimeridian of the rotated
    frame can come out oversized; that is left as is.
    """

    def __init__(self, factory: ProjectionFactory) -> None:
        self.factory = factory

    def fit(
        self,
        feature: Feature,
        viewport: Viewport,
        *,
        projection_id: str,
    ) -> tuple[Rotation, float]:
        if feature.geometry is None or feature.geometry.is_empty or feature.centroid is None:
            raise DegenerateGeometryError(f"Feature '{feature.name}' has empty geometry")

        lon_c, lat_c = feature.centroid
        rotation = Rotation(-lon_c, -lat_c, 0.0)
        provisional = self.factory.build(projection_id, rotation, viewport, scale=REFERENCE_SCALE)
        bounds = GeoPath(provisional).bounds(feature.geometry)
        if bounds is None:
            raise DegenerateGeometryError(f"Feature '{feature.name}' is not visible when centred")

        x0, y0, x1, y1 = bounds
        ratio = max((x1 - x0) / viewport.width, (y1 - y0) / viewport.height)
        if not math.isfinite(ratio) or ratio <= 0.0:
            raise DegenerateGeometryError(f"Feature '{feature.name}' has zero projected extent")

        scale = REFERENCE_SCALE / ratio * PADDING_FACTOR
        _LOGGER.debug(
            "Framed '%s' under %s: centroid=(%.3f, %.3f) scale=%.2f",
            feature.name,
            projection_id,
            lon_c,
            lat_c,
            scale,
        )
        return (rotation, scale)
