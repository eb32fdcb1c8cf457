"""Viewport observation primitives.

A :class:`ViewportObserver` watches regions of the document and reports,
through a callback, which of them started or stopped intersecting the
viewport (grown or shrunk by a root margin). The geometry-based
implementation here works on plain numbers so the reader engine can run
against any host that can report element offsets and the scroll position.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple


class Viewport(Protocol):
    """The scrolling container as seen by the reader engine."""

    @property
    def scroll_top(self) -> float: ...

    @property
    def scroll_height(self) -> float: ...

    @property
    def height(self) -> float: ...

    def scroll_to(self, top: float, *, animated: bool = False) -> None: ...


@dataclass(slots=True)
class Region:
    """A laid-out element in document coordinates."""

    key: str
    top: float = 0.0
    height: float = 0.0
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass(slots=True, frozen=True)
class Length:
    value: float
    percent: bool = False

    def resolve(self, reference: float) -> float:
        return reference * self.value / 100.0 if self.percent else self.value


_LENGTH = re.compile(r"^(-?\d+(?:\.\d+)?)(px|%)?$")


def parse_length(text: str) -> Length:
    match = _LENGTH.match(text.strip())
    if not match:
        raise ValueError(f"Invalid margin length: {text!r}")
    return Length(float(match.group(1)), percent=match.group(2) == "%")


@dataclass(slots=True, frozen=True)
class Margin:
    """Root margin; only the vertical sides matter for a vertical reader."""

    top: Length = Length(0)
    bottom: Length = Length(0)

    @classmethod
    def parse(cls, text: str) -> "Margin":
        """Parse CSS shorthand: ``"1200px"``, ``"1200px 0px 0px 0px"``, ``"-20% 0px -60% 0px"``."""

        parts = [parse_length(part) for part in text.split()]
        if not parts or len(parts) > 4:
            raise ValueError(f"Invalid margin: {text!r}")
        if len(parts) <= 2:
            return cls(top=parts[0], bottom=parts[0])
        return cls(top=parts[0], bottom=parts[2])

    @classmethod
    def uniform(cls, px: float) -> "Margin":
        return cls(top=Length(px), bottom=Length(px))

    def root_bounds(self, viewport: Viewport) -> Tuple[float, float]:
        height = viewport.height
        top = viewport.scroll_top - self.top.resolve(height)
        bottom = viewport.scroll_top + height + self.bottom.resolve(height)
        return top, bottom


@dataclass(slots=True, frozen=True)
class IntersectionEntry:
    region: Region
    is_intersecting: bool


IntersectionCallback = Callable[[List[IntersectionEntry]], None]


class Subscription:
    """Handle returned by :meth:`ViewportObserver.observe`."""

    def __init__(self, observer: "ViewportObserver", region: Region) -> None:
        self._observer = observer
        self.region = region
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._observer.unobserve(self.region)


class ViewportObserver(Protocol):
    def observe(self, region: Region) -> Subscription: ...

    def unobserve(self, region: Region) -> None: ...

    def disconnect(self) -> None: ...


class ObserverFactory(Protocol):
    """Creates observers and delivers pending notifications on demand."""

    def create(self, callback: IntersectionCallback, margin: Margin) -> ViewportObserver: ...

    def refresh(self) -> None: ...


def intersects(region: Region, bounds: Tuple[float, float]) -> bool:
    root_top, root_bottom = bounds
    if root_bottom < root_top:
        return False
    if region.height <= 0:
        # Zero-height sentinels count when they touch the root box.
        return root_top <= region.top <= root_bottom
    return region.top < root_bottom and region.bottom > root_top


class GeometryObserver:
    """Intersection observer computed from :class:`Region` geometry.

    The first :meth:`check` after a region is observed always reports it;
    afterwards only state changes are reported. Entries are delivered in
    observation order in a single callback invocation.
    """

    def __init__(self, viewport: Viewport, callback: IntersectionCallback, *, root_margin: Margin) -> None:
        self._viewport = viewport
        self._callback = callback
        self._margin = root_margin
        self._regions: List[Region] = []
        self._states: Dict[int, Optional[bool]] = {}

    @property
    def regions(self) -> Sequence[Region]:
        return tuple(self._regions)

    def observe(self, region: Region) -> Subscription:
        if id(region) not in self._states:
            self._regions.append(region)
            self._states[id(region)] = None
        return Subscription(self, region)

    def unobserve(self, region: Region) -> None:
        if id(region) in self._states:
            del self._states[id(region)]
            self._regions = [item for item in self._regions if item is not region]

    def disconnect(self) -> None:
        self._regions = []
        self._states = {}

    def check(self) -> List[IntersectionEntry]:
        bounds = self._margin.root_bounds(self._viewport)
        entries: List[IntersectionEntry] = []
        for region in list(self._regions):
            state = intersects(region, bounds)
            if self._states.get(id(region)) is not state:
                self._states[id(region)] = state
                entries.append(IntersectionEntry(region=region, is_intersecting=state))
        if entries:
            self._callback(entries)
        return entries


class GeometryObserverHub:
    """:class:`ObserverFactory` for :class:`GeometryObserver` instances."""

    def __init__(self, viewport: Viewport) -> None:
        self._viewport = viewport
        self._observers: List[GeometryObserver] = []

    def create(self, callback: IntersectionCallback, margin: Margin) -> GeometryObserver:
        observer = GeometryObserver(self._viewport, callback, root_margin=margin)
        self._observers.append(observer)
        return observer

    def refresh(self) -> None:
        # Disconnected observers have no regions left; drop them.
        self._observers = [observer for observer in self._observers if observer.regions]
        for observer in list(self._observers):
            observer.check()
