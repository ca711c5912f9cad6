"""Persisted auxiliary state: dismissed notifications and partner settings."""

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Generic, TypeVar

from database import Database
from models import PartnerSettings

logger = logging.getLogger(__name__)

DISMISSED_NOTIFICATIONS_KEY = "dismissed_notifications"
PARTNER_SETTINGS_KEY = "partner_settings"

T = TypeVar("T")


@dataclass
class Loaded(Generic[T]):
    """A loaded state value, flagged when the stored blob was unusable."""
    value: T
    used_default: bool = False


class StateStore:
    """Load/save JSON state blobs, falling back to defaults on bad data."""

    def __init__(self, db: Database):
        self.db = db

    def _load_json(self, key: str) -> Loaded[Any]:
        raw = self.db.get_state(key)
        if raw is None:
            return Loaded(None, used_default=True)
        try:
            return Loaded(json.loads(raw))
        except json.JSONDecodeError:
            logger.warning("Stored %s is not valid JSON, using default", key)
            return Loaded(None, used_default=True)

    def load_dismissed_ids(self) -> Loaded[set[str]]:
        """Get the set of notification ids the user has dismissed."""
        loaded = self._load_json(DISMISSED_NOTIFICATIONS_KEY)
        if loaded.used_default:
            return Loaded(set(), used_default=True)
        if not isinstance(loaded.value, list):
            logger.warning("Stored dismissed notifications are not a list, using default")
            return Loaded(set(), used_default=True)
        return Loaded({str(item) for item in loaded.value})

    def save_dismissed_ids(self, ids: set[str]) -> None:
        """Persist the dismissed notification ids."""
        self.db.set_state(DISMISSED_NOTIFICATIONS_KEY, json.dumps(sorted(ids)))

    def load_partner_settings(self) -> Loaded[PartnerSettings]:
        """Get the utilities partner settings."""
        loaded = self._load_json(PARTNER_SETTINGS_KEY)
        if loaded.used_default:
            return Loaded(PartnerSettings(), used_default=True)
        if not isinstance(loaded.value, dict):
            logger.warning("Stored partner settings are not an object, using default")
            return Loaded(PartnerSettings(), used_default=True)
        return Loaded(PartnerSettings(
            utilities_id=str(loaded.value.get("utilities_id") or ""),
            utilities_provider=str(loaded.value.get("utilities_provider") or ""),
        ))

    def save_partner_settings(self, settings: PartnerSettings) -> None:
        """Persist the utilities partner settings."""
        self.db.set_state(PARTNER_SETTINGS_KEY, json.dumps(asdict(settings)))
