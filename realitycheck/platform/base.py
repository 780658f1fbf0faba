"""Abstract base class for platform usage-statistics providers."""

from abc import ABC, abstractmethod
from typing import Optional

from realitycheck.core.errors import PackageNotFoundError
from realitycheck.core.models import AppInfo, UsageRecord


class UsageStatsProvider(ABC):
    """Common interface onto the host's usage-statistics and package services.

    Each supported host provides a concrete implementation that uses its
    native APIs behind this interface. Every method may block and should
    be called off the UI thread.
    """

    @abstractmethod
    def has_usage_permission(self) -> bool:
        """Return True if this process may query usage statistics."""
        pass

    @abstractmethod
    def request_usage_permission(self) -> None:
        """Send the user to the host's usage-access settings."""
        pass

    @abstractmethod
    def query_usage_records(self, start_ms: int, end_ms: int) -> list[UsageRecord]:
        """Return per-package usage for the window ``[start_ms, end_ms)``."""
        pass

    @abstractmethod
    def get_app_info(self, package_id: str) -> AppInfo:
        """Return metadata for *package_id*.

        Raises:
            PackageNotFoundError: If the package is not installed.
        """
        pass

    @abstractmethod
    def list_launchable_packages(self) -> list[str]:
        """Return the ids of all packages with a launcher entry."""
        pass

    @abstractmethod
    def load_app_icon(self, package_id: str) -> str:
        """Return the encoded icon for *package_id*.

        Raises:
            PackageNotFoundError: If the package is not installed.
        """
        pass

    def resolve_display_name(self, package_id: str) -> Optional[str]:
        """Return the user-visible label for *package_id*, or None."""
        try:
            return self.get_app_info(package_id).label
        except PackageNotFoundError:
            return None
