"""Core data models for RealityCheck.

Defines all dataclasses and enums used across the package:
- Classification: Category, CategoryHint
- Platform input: UsageRecord, AppInfo
- Query output: AppSummary, InstalledApp, ForegroundApp
- Background sync: SyncStatus, SyncResult
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

class Category(Enum):
    """Human-readable app category reported to the UI layer."""
    SOCIAL_MEDIA = "Social Media"
    GAMING = "Gaming"
    STREAMING = "Streaming"
    CREATIVE = "Creative"
    NEWS = "News"
    PRODUCTIVITY = "Productivity"
    OTHER = "Other"


class CategoryHint(Enum):
    """Platform-native application category, as assigned by the OS."""
    UNDEFINED = -1
    GAME = 0
    AUDIO = 1
    VIDEO = 2
    IMAGE = 3
    SOCIAL = 4
    NEWS = 5
    MAPS = 6
    PRODUCTIVITY = 7
    ACCESSIBILITY = 8


# ---------------------------------------------------------------------------
# Platform input
# ---------------------------------------------------------------------------

@dataclass
class UsageRecord:
    """Raw per-package foreground usage for one query window."""
    package_id: str
    total_foreground_ms: int
    last_used_at: int = 0      # epoch ms, 0 = never observed
    first_seen_at: int = 0     # epoch ms
    category_hint: Optional[CategoryHint] = None


@dataclass
class AppInfo:
    """Package metadata reported by the platform package manager."""
    package_id: str
    label: str
    category_hint: Optional[CategoryHint] = None
    is_system_app: bool = False


# ---------------------------------------------------------------------------
# Query output
# ---------------------------------------------------------------------------

@dataclass
class AppSummary:
    """A classified, display-ready usage entry for one application."""
    package_id: str
    display_name: str
    total_foreground_ms: int
    last_used_at: int
    first_seen_at: int
    category: Category
    is_productive: bool
    sync_time: Optional[int] = None  # set by the background sync only

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "packageName": self.package_id,
            "appName": self.display_name,
            "totalTimeMs": self.total_foreground_ms,
            "lastUsed": self.last_used_at,
            "firstUsed": self.first_seen_at,
            "category": self.category.value,
            "isProductive": self.is_productive,
        }
        if self.sync_time is not None:
            data["syncTime"] = self.sync_time
        return data


@dataclass
class InstalledApp:
    """A launchable application installed on the device."""
    package_id: str
    display_name: str
    category: Category
    is_productive: bool
    is_system_app: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "packageName": self.package_id,
            "appName": self.display_name,
            "category": self.category.value,
            "isProductive": self.is_productive,
            "isSystemApp": self.is_system_app,
        }


@dataclass
class ForegroundApp:
    """The application most recently brought to the foreground."""
    package_id: str
    display_name: str
    last_used_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "packageName": self.package_id,
            "appName": self.display_name,
            "lastUsed": self.last_used_at,
        }


# ---------------------------------------------------------------------------
# Background sync
# ---------------------------------------------------------------------------

class SyncStatus(Enum):
    """State of the incremental sync tracker."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_TERMINAL = "failed_terminal"


@dataclass
class SyncResult:
    """Outcome of a single sync cycle attempt."""
    status: SyncStatus
    attempt: int
    window_start: Optional[int] = None  # epoch ms
    window_end: Optional[int] = None    # epoch ms
    summaries_stored: int = 0

    @property
    def should_retry(self) -> bool:
        return self.status is SyncStatus.FAILED_RETRYABLE
