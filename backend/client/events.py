from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from geo.projection import Viewport


@dataclass(frozen=True)
class ViewportSettled:
    """A pan/zoom gesture finished; `viewport` is what the map now shows."""

    viewport: Viewport


@dataclass(frozen=True)
class PointerClick:
    # Screen pixels, origin top-left of the map.
    x: float
    y: float


@dataclass(frozen=True)
class SecondaryClick:
    lon: float
    lat: float


MapEvent = Union[ViewportSettled, PointerClick, SecondaryClick]
