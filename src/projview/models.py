"""Domain models shared across the render pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterator, Mapping


class Resolution(str, Enum):
    """Geometry dataset quality tier."""

    COARSE = "coarse"
    FINE = "fine"

    @classmethod
    def parse(cls, value: str | Resolution) -> Resolution:
        if isinstance(value, Resolution):
            return value
        normalized = str(value).strip().casefold()
        for member in cls:
            if member.value == normalized:
                return member
        allowed = ", ".join(member.value for member in cls)
        raise ValueError(f"Unknown resolution '{value}'. Expected one of: {allowed}")


@dataclass(frozen=True, slots=True)
class Rotation:
    """Globe rotation in degrees. Roll is unused and must stay 0."""

    lam: float = 0.0
    phi: float = 0.0
    gamma: float = 0.0

    def __post_init__(self) -> None:
        if self.gamma != 0.0:
            raise ValueError("Rotation roll (gamma) is unused and must be 0")
        if not (math.isfinite(self.lam) and math.isfinite(self.phi)):
            raise ValueError("Rotation angles must be finite")

    def as_tuple(self) -> tuple[float, float, float]:
        return (self.lam, self.phi, self.gamma)


@dataclass(frozen=True, slots=True)
class Viewport:
    """Drawable surface size in logical pixels."""

    width: float
    height: float

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport must be positive, got {self.width}x{self.height}")

    @property
    def center(self) -> tuple[float, float]:
        return (self.width / 2.0, self.height / 2.0)

    @property
    def min_side(self) -> float:
        return min(self.width, self.height)


@dataclass(frozen=True, slots=True)
class Feature:
    """Named region geometry with derived geographic bounds and centroid."""

    name: str
    geometry: Any
    bounds: tuple[float, float, float, float] | None
    centroid: tuple[float, float] | None
    feature_id: str | None = None
    properties: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_degenerate(self) -> bool:
        return self.bounds is None or self.centroid is None


@dataclass(frozen=True, slots=True)
class FeatureCollection:
    """Decoded, ordered features for one resolution."""

    resolution: Resolution
    features: tuple[Feature, ...]
    source: str = ""

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def __len__(self) -> int:
        return len(self.features)

    def find(self, name: str) -> Feature | None:
        wanted = name.casefold()
        for feature in self.features:
            if feature.name.casefold() == wanted:
                return feature
        return None


@dataclass(frozen=True, slots=True)
class ViewState:
    """Immutable snapshot of the session state that fully determines a frame."""

    projection_id: str
    rotation: Rotation = Rotation()
    show_distortion: bool = True
    show_grid: bool = True
    resolution: Resolution = Resolution.COARSE
    focused: Feature | None = None
    viewport: Viewport = Viewport(960.0, 600.0)

    def evolve(self, **changes: Any) -> ViewState:
        return replace(self, **changes)
