"""ArcGIS REST map service handle.

Identify queries go to ``{service}/identify`` of a ``MapServer`` endpoint.
Each handle owns its own ``requests.Session``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterator

import requests

from utfgrid.config import GRID_SIZE, REQUEST_TIMEOUT, TILE_PIXELS
from utfgrid.core.errors import IdentifyError, InvalidExtentError, MapOpenError
from utfgrid.core.types import GeoExtent

from .base import MapHandle

logger = logging.getLogger(__name__)

#: Screen pixels covered by one grid sample
PIXELS_PER_SAMPLE = TILE_PIXELS // GRID_SIZE


class ArcGISMapService(MapHandle):
    """Map handle backed by an ArcGIS Server ``MapServer`` REST endpoint.

    Args:
        url: Service URL ending in ``/MapServer``
        timeout: Request timeout in seconds
        session: Optional pre-configured session (tests, auth headers)
    """

    def __init__(
        self,
        url: str,
        timeout: float = REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        try:
            self._description = self._describe()
        except MapOpenError:
            self._session.close()
            raise

    def _describe(self) -> dict[str, Any]:
        """Fetch the service description (``?f=json``)."""
        try:
            response = self._session.get(self.url, params={"f": "json"}, timeout=self.timeout)
            response.raise_for_status()
            description = response.json()
        except (requests.RequestException, ValueError) as e:
            raise MapOpenError(f"Unable to open map at {self.url}: {e}") from e

        if "error" in description:
            message = description["error"].get("message", "unknown error")
            raise MapOpenError(f"Unable to open map at {self.url}: {message}")
        logger.debug("Opened map service %s", self.url)
        return description

    def projection(self) -> int | None:
        reference = self._description.get("spatialReference") or {}
        return reference.get("latestWkid", reference.get("wkid"))

    def full_extent(self) -> GeoExtent:
        extent = self._description.get("fullExtent")
        if not extent:
            raise MapOpenError(f"Map at {self.url} does not report a full extent")
        try:
            return GeoExtent(
                xmin=float(extent["xmin"]),
                ymin=float(extent["ymin"]),
                xmax=float(extent["xmax"]),
                ymax=float(extent["ymax"]),
            )
        except (KeyError, TypeError, ValueError, InvalidExtentError) as e:
            raise MapOpenError(f"Map at {self.url} has an invalid full extent: {e}") from e

    def identify_pixel(self, extent: GeoExtent) -> Iterator[tuple[str, Any]]:
        """Identify visible layers under ``extent``.

        Raises:
            IdentifyError: If the request fails or the service returns an error
        """
        bounds = f"{extent.xmin},{extent.ymin},{extent.xmax},{extent.ymax}"
        params = {
            "geometryType": "esriGeometryEnvelope",
            "geometry": json.dumps({
                "xmin": extent.xmin,
                "ymin": extent.ymin,
                "xmax": extent.xmax,
                "ymax": extent.ymax,
            }),
            "mapExtent": bounds,
            "imageDisplay": f"{PIXELS_PER_SAMPLE},{PIXELS_PER_SAMPLE},96",
            "tolerance": "0",
            "layers": "visible",
            "returnGeometry": "false",
            "f": "json",
        }
        try:
            response = self._session.post(
                f"{self.url}/identify", data=params, timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise IdentifyError(f"Identify request failed: {e}") from e

        if "error" in payload:
            raise IdentifyError(payload["error"].get("message", "unknown error"))
        return self._iter_attributes(payload.get("results") or [])

    @staticmethod
    def _iter_attributes(results: list[dict[str, Any]]) -> Iterator[tuple[str, Any]]:
        for result in results:
            attributes = result.get("attributes")
            if not isinstance(attributes, dict):
                logger.debug("Identify result for layer %s has no attributes", result.get("layerId"))
                continue
            yield from attributes.items()

    def close(self) -> None:
        self._session.close()
