"""Usage provider backed by a JSON usage export.

Lets the pipeline run off-device against data exported from a phone.
The export is a JSON object::

    {
      "permission_granted": true,
      "apps": [
        {"package": "com.whatsapp", "label": "WhatsApp",
         "category": "SOCIAL", "system": false, "launchable": true}
      ],
      "usage": [
        {"package": "com.whatsapp", "interval_start": 1710460800000,
         "interval_end": 1710547200000, "foreground_ms": 1200000,
         "last_used": 1710500000000, "first_seen": 1710460800000}
      ],
      "icons": {"com.whatsapp": "<base64 png>"}
    }

Usage entries are daily buckets; a query returns every bucket that
overlaps the requested window, merged per package.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from realitycheck.core.errors import CollaboratorError, PackageNotFoundError
from realitycheck.core.models import AppInfo, CategoryHint, UsageRecord
from realitycheck.platform.base import UsageStatsProvider

logger = logging.getLogger(__name__)


class SnapshotUsageProvider(UsageStatsProvider):
    """Serves usage statistics from an exported JSON snapshot."""

    def __init__(self, path: Optional[str] = None, data: Optional[dict[str, Any]] = None) -> None:
        self.path = path
        self._data = data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SnapshotUsageProvider":
        return cls(data=data)

    # ------------------------------------------------------------------
    # Snapshot loading
    # ------------------------------------------------------------------

    def reload(self) -> None:
        """Drop the cached snapshot so the next call re-reads the file."""
        if self.path is not None:
            self._data = None

    def _snapshot(self) -> dict[str, Any]:
        if self._data is None:
            if self.path is None:
                raise CollaboratorError("No usage snapshot configured")
            try:
                with open(Path(self.path).expanduser(), "r", encoding="utf-8") as fh:
                    data = json.load(fh)
                if not isinstance(data, dict):
                    raise ValueError("Top-level JSON value must be an object")
            except (OSError, ValueError) as exc:
                raise CollaboratorError(
                    f"Failed to read usage snapshot {self.path}: {exc}"
                ) from exc
            logger.debug("Loaded usage snapshot from %s", self.path)
            self._data = data
        return self._data

    def _apps(self) -> dict[str, dict[str, Any]]:
        return {entry["package"]: entry for entry in self._snapshot().get("apps", [])}

    # ------------------------------------------------------------------
    # UsageStatsProvider
    # ------------------------------------------------------------------

    def has_usage_permission(self) -> bool:
        return bool(self._snapshot().get("permission_granted", True))

    def request_usage_permission(self) -> None:
        logger.info("Usage access is controlled by the snapshot's permission_granted flag")

    def query_usage_records(self, start_ms: int, end_ms: int) -> list[UsageRecord]:
        apps = self._apps()
        merged: dict[str, UsageRecord] = {}
        for entry in self._snapshot().get("usage", []):
            bucket_start = entry.get("interval_start", 0)
            bucket_end = entry.get("interval_end", bucket_start)
            if bucket_start >= end_ms or bucket_end <= start_ms:
                continue

            package = entry["package"]
            record = merged.get(package)
            if record is None:
                app = apps.get(package, {})
                merged[package] = UsageRecord(
                    package_id=package,
                    total_foreground_ms=entry.get("foreground_ms", 0),
                    last_used_at=entry.get("last_used", 0),
                    first_seen_at=entry.get("first_seen", bucket_start),
                    category_hint=_parse_hint(app.get("category")),
                )
            else:
                record.total_foreground_ms += entry.get("foreground_ms", 0)
                record.last_used_at = max(record.last_used_at, entry.get("last_used", 0))
                record.first_seen_at = min(
                    record.first_seen_at, entry.get("first_seen", bucket_start)
                )
        return list(merged.values())

    def get_app_info(self, package_id: str) -> AppInfo:
        app = self._apps().get(package_id)
        if app is None:
            raise PackageNotFoundError(package_id)
        return AppInfo(
            package_id=package_id,
            label=app.get("label", package_id),
            category_hint=_parse_hint(app.get("category")),
            is_system_app=bool(app.get("system", False)),
        )

    def list_launchable_packages(self) -> list[str]:
        return [
            package
            for package, app in self._apps().items()
            if app.get("launchable", True)
        ]

    def load_app_icon(self, package_id: str) -> str:
        icon = self._snapshot().get("icons", {}).get(package_id)
        if icon is None:
            raise PackageNotFoundError(package_id)
        return icon


def _parse_hint(value: Optional[str]) -> Optional[CategoryHint]:
    """Map a category name from the export to a CategoryHint."""
    if value is None:
        return None
    try:
        return CategoryHint[value.upper()]
    except KeyError:
        return CategoryHint.UNDEFINED
