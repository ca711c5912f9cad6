"""AI route estimation for logbook import using Groq API."""

import json
import logging
import math
import re
from typing import Optional, Sequence

from config import get_config
from errors import QuotaExceededError, RouteEstimationError
from models import RouteStop, TripSegment

logger = logging.getLogger(__name__)

# Appointments at this pseudo-address involve no travel
OFFICE_PLACEHOLDER = "General / Office"

ROUTE_PROMPT = """You are a vehicle logbook assistant for a property manager.
The driver starts and ends the day at: {start_address}

These are the day's appointments in the order they were attended:
{stops}

Calculate the driving trips for this schedule: from the start address to each
appointment in turn, and back to the start address at the end of the day.
Return ONLY a valid JSON array, no other text.

Required JSON format:
[
    {{"purpose": "Short description, e.g. Inspection - 12 Smith St", "distance": estimated kilometres as a number}}
]
"""

_QUOTA_MARKERS = ("quota", "resource_exhausted", "429")


def clean_json_array(text: str) -> str:
    """Strip Markdown fences and surrounding chatter from a JSON array reply."""
    if not text:
        return "[]"
    clean = text.replace("```json", "").replace("```", "").strip()
    first = clean.find("[")
    last = clean.rfind("]")
    if first != -1 and last != -1:
        clean = clean[first:last + 1]
    return clean


def is_quota_error(error: Exception) -> bool:
    """Decide whether an API failure is a quota or rate limit rejection."""
    if getattr(error, "status_code", None) == 429:
        return True
    if type(error).__name__ == "RateLimitError":
        return True
    message = str(error).lower()
    return any(marker in message for marker in _QUOTA_MARKERS)


class RouteEstimator:
    """Estimate the day's driving legs from an ordered list of stops."""

    def __init__(self, client=None):
        self.config = get_config()
        self._client = client

    @property
    def is_available(self) -> bool:
        """Check if Groq API is configured."""
        return self._client is not None or bool(self.config.groq_api_key)

    @property
    def client(self):
        """Lazy-load Groq client."""
        if self._client is None:
            if not self.is_available:
                raise RouteEstimationError("AI route estimation is not configured (set GROQ_API_KEY).")
            from groq import Groq
            self._client = Groq(api_key=self.config.groq_api_key)
        return self._client

    def estimate_route(self, stops: Sequence[RouteStop], start_address: str) -> list[TripSegment]:
        """Return the trip segments for the stops, in driving order.

        Stops without a real address are skipped; if none remain the API is
        not called and an empty list comes back.
        """
        trip_points = [s for s in stops if s.address and s.address != OFFICE_PLACEHOLDER]
        if not trip_points:
            return []

        stop_lines = "\n".join(
            f"{i}. {stop.time or 'unscheduled'} - {stop.address}"
            for i, stop in enumerate(trip_points, start=1)
        )
        prompt = ROUTE_PROMPT.format(start_address=start_address, stops=stop_lines)

        try:
            response = self.client.chat.completions.create(
                model=self.config.groq_model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0.1,
                max_tokens=1000,
            )
        except RouteEstimationError:
            raise
        except Exception as e:
            if is_quota_error(e):
                logger.warning("Route estimation hit the AI quota: %s", e)
                raise QuotaExceededError() from e
            logger.error("Route estimation failed: %s", e)
            raise RouteEstimationError() from e

        content = response.choices[0].message.content or ""
        try:
            data = json.loads(clean_json_array(content))
        except json.JSONDecodeError as e:
            logger.error("Failed to parse AI route response: %s", e)
            raise RouteEstimationError() from e

        if not isinstance(data, list):
            logger.error("AI route response was not a list: %r", data)
            raise RouteEstimationError()

        segments = []
        for raw in data:
            segment = self._to_segment(raw)
            if segment is None:
                logger.debug("Skipping unusable route segment: %r", raw)
                continue
            segments.append(segment)
        return segments

    def _to_segment(self, raw) -> Optional[TripSegment]:
        """Map one JSON object to a segment, or None if it is unusable."""
        if not isinstance(raw, dict):
            return None
        purpose = str(raw.get("purpose") or "").strip()
        distance = raw.get("distance")
        if isinstance(distance, str):
            match = re.search(r"\d+(?:\.\d+)?", distance)
            distance = float(match.group()) if match else None
        if not purpose or isinstance(distance, bool) or not isinstance(distance, (int, float)):
            return None
        if not math.isfinite(distance) or distance <= 0:
            return None
        return TripSegment(purpose=purpose, distance=float(distance))
