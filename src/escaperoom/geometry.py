"""Coordinate mapping between rendered-image and container percentage spaces.

Hotspot positions are stored as percentages of the *rendered image content*.
The image is drawn with "contain" fitting, so inside a container of a
different aspect ratio it is letterboxed either horizontally or vertically.
The functions here translate between the two percentage spaces; they are pure
so the interaction layer can call them on every pointer event.

:class:`GeometryTracker` owns the impure side: it asks a measurement
capability for the container size, debounces recomputation after resizes or
background changes, and publishes the latest :class:`ImageDimensions`.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Tuple

from PIL import Image, UnidentifiedImageError

from .scheduling import ScheduledHandle, Scheduler

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.1

Size = Tuple[float, float]


def clamp_pct(value: float, lower: float = 0.0, upper: float = 100.0) -> float:
    """Clamp ``value`` to the inclusive ``[lower, upper]`` range."""

    return max(lower, min(upper, value))


@dataclass(frozen=True)
class ImageDimensions:
    """Where the rendered image content sits inside its container.

    ``scale_x``/``scale_y`` are the rendered size as a fraction of the
    container (``(0, 1]``) and ``offset_x``/``offset_y`` are the letterbox
    margins expressed as percentages of the container (``[0, 50)``).
    """

    scale_x: float = 1.0
    scale_y: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    @classmethod
    def identity(cls) -> "ImageDimensions":
        return cls()

    @property
    def is_identity(self) -> bool:
        return (
            self.scale_x == 1.0
            and self.scale_y == 1.0
            and self.offset_x == 0.0
            and self.offset_y == 0.0
        )

    def to_container(self, x_pct: float, y_pct: float) -> Tuple[float, float]:
        """Map an image-percentage point onto container percentages."""

        return (
            x_pct * self.scale_x + self.offset_x,
            y_pct * self.scale_y + self.offset_y,
        )

    def to_image(self, x_pct: float, y_pct: float) -> Tuple[float, float]:
        """Map a container-percentage point onto clamped image percentages."""

        return (
            clamp_pct((x_pct - self.offset_x) / self.scale_x),
            clamp_pct((y_pct - self.offset_y) / self.scale_y),
        )


def compute_image_dimensions(
    container_width: float,
    container_height: float,
    image_width: float,
    image_height: float,
) -> ImageDimensions:
    """Return the contain-fit placement of an image inside a container.

    A container that has not been laid out yet (zero width or height), or an
    image whose natural size is unknown, yields the identity mapping. Callers
    must tolerate that transient value until the next layout pass.
    """

    if container_width <= 0 or container_height <= 0:
        return ImageDimensions.identity()
    if image_width <= 0 or image_height <= 0:
        return ImageDimensions.identity()

    image_ratio = image_width / image_height
    container_ratio = container_width / container_height

    if image_ratio > container_ratio:
        rendered_width = float(container_width)
        rendered_height = rendered_width / image_ratio
    else:
        rendered_height = float(container_height)
        rendered_width = rendered_height * image_ratio

    offset_x = (container_width - rendered_width) / 2 / container_width * 100
    offset_y = (container_height - rendered_height) / 2 / container_height * 100

    return ImageDimensions(
        scale_x=rendered_width / container_width,
        scale_y=rendered_height / container_height,
        offset_x=offset_x,
        offset_y=offset_y,
    )


def image_to_container(
    dimensions: ImageDimensions, x_pct: float, y_pct: float
) -> Tuple[float, float]:
    """Forward transform: image percentages to container percentages."""

    return dimensions.to_container(x_pct, y_pct)


def container_to_image(
    dimensions: ImageDimensions, x_pct: float, y_pct: float
) -> Tuple[float, float]:
    """Inverse transform: container percentages to clamped image percentages."""

    return dimensions.to_image(x_pct, y_pct)


def point_to_container_pct(
    x: float, y: float, container_width: float, container_height: float
) -> Tuple[float, float]:
    """Convert a pixel offset inside the container to container percentages.

    Pixel offsets are measured from the container's top-left corner. A
    container without layout maps every point to the origin.
    """

    if container_width <= 0 or container_height <= 0:
        return 0.0, 0.0
    return x / container_width * 100, y / container_height * 100


_DATA_URL_PATTERN = re.compile(
    r"^data:(?P<mime>[\w/+.-]+)?(?P<params>(;[\w-]+=[^;,]*)*)(?P<b64>;base64)?,(?P<data>.*)$",
    re.DOTALL,
)


def read_image_size(data_url: str) -> Size | None:
    """Decode ``data_url`` and return the image's natural ``(width, height)``.

    Returns ``None`` when the value is not a decodable image data URL; the
    caller then keeps using the identity mapping.
    """

    match = _DATA_URL_PATTERN.match(data_url.strip())
    if match is None:
        return None

    payload = match.group("data")
    try:
        raw = (
            base64.b64decode(payload, validate=False)
            if match.group("b64")
            else payload.encode("utf-8")
        )
    except (binascii.Error, ValueError):
        return None

    try:
        with Image.open(io.BytesIO(raw)) as image:
            width, height = image.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        logger.debug("Background image could not be decoded")
        return None
    return float(width), float(height)


class ContainerMeasurer(ABC):
    """Capability that reports the container's current pixel size."""

    @abstractmethod
    def measure(self) -> Size:
        """Return ``(width, height)`` of the container in pixels."""

    @abstractmethod
    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Invoke ``callback`` whenever the size changes; return an unsubscriber."""


class StaticContainer(ContainerMeasurer):
    """Container whose size is set explicitly, used by headless sessions."""

    def __init__(self, width: float = 0.0, height: float = 0.0) -> None:
        self._size: Size = (float(width), float(height))
        self._listeners: List[Callable[[], None]] = []

    def measure(self) -> Size:
        return self._size

    def resize(self, width: float, height: float) -> None:
        """Update the reported size and notify subscribers."""

        self._size = (float(width), float(height))
        for listener in list(self._listeners):
            listener()

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe


class GeometryTracker:
    """Keep :class:`ImageDimensions` current as the container and image change.

    Recomputation is debounced by ``debounce`` seconds so layout can settle
    before the container is measured. Overlapping requests collapse onto the
    latest one; since the mapping is a pure function of the measurements the
    most recent computation always wins.
    """

    def __init__(
        self,
        container: ContainerMeasurer,
        scheduler: Scheduler,
        *,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._container = container
        self._scheduler = scheduler
        self._debounce = debounce
        self._image_size: Size | None = None
        self._dimensions = ImageDimensions.identity()
        self._pending: ScheduledHandle | None = None
        self._listeners: List[Callable[[ImageDimensions], None]] = []
        self._unsubscribe: Callable[[], None] | None = container.subscribe(
            self.request_recompute
        )

    @property
    def dimensions(self) -> ImageDimensions:
        return self._dimensions

    @property
    def container(self) -> ContainerMeasurer:
        return self._container

    @property
    def image_size(self) -> Size | None:
        return self._image_size

    def on_change(self, callback: Callable[[ImageDimensions], None]) -> None:
        """Register ``callback`` to receive every newly computed mapping."""

        self._listeners.append(callback)

    def set_image_size(self, size: Size | None) -> None:
        """Record the background's natural size and schedule a recompute."""

        self._image_size = size
        self.request_recompute()

    def set_background_image(self, data_url: str | None) -> None:
        """Decode a background data URL and schedule a recompute.

        The mapping stays at its previous value until the debounced recompute
        runs, mirroring a browser that only measures after decode completes.
        """

        size = read_image_size(data_url) if data_url else None
        self.set_image_size(size)

    def request_recompute(self) -> None:
        """Debounce a recomputation of the mapping."""

        if self._pending is not None:
            self._pending.cancel()
        self._pending = self._scheduler.call_later(self._debounce, self.recompute)

    def recompute(self) -> ImageDimensions:
        """Measure immediately and publish the resulting mapping."""

        self._pending = None
        width, height = self._container.measure()
        if self._image_size is None:
            dimensions = ImageDimensions.identity()
        else:
            dimensions = compute_image_dimensions(width, height, *self._image_size)

        if dimensions != self._dimensions:
            logger.debug(
                "Image mapping updated for %sx%s container: %s",
                width,
                height,
                dimensions,
            )
        self._dimensions = dimensions
        for listener in list(self._listeners):
            listener(dimensions)
        return dimensions

    def close(self) -> None:
        """Stop observing the container and drop any pending recompute."""

        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


__all__ = [
    "ImageDimensions",
    "compute_image_dimensions",
    "image_to_container",
    "container_to_image",
    "point_to_container_pct",
    "clamp_pct",
    "read_image_size",
    "ContainerMeasurer",
    "StaticContainer",
    "GeometryTracker",
    "DEFAULT_DEBOUNCE_SECONDS",
]
