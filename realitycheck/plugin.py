"""Request/response surface exposed to the application UI layer.

``UsageStatsPlugin.handle`` dispatches a method name plus an argument
dict and returns plain JSON-ready data. ``call`` does the same on a
worker pool and hands back a Future, so platform queries never run on
the caller's thread. Usage updates are pushed through
``UsageUpdateChannel`` to at most one listener.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Optional

from realitycheck.core.aggregator import UsageAggregator
from realitycheck.core.errors import (
    CollaboratorError,
    InvalidArgumentError,
    NotImplementedMethodError,
    UsageError,
)
from realitycheck.core.icon_cache import IconCache
from realitycheck.core.models import AppSummary
from realitycheck.core.windows import (
    foreground_window,
    to_epoch_ms,
    today_window,
    weekly_window,
)
from realitycheck.platform.base import UsageStatsProvider

logger = logging.getLogger(__name__)

Sink = Callable[[list[dict[str, Any]]], None]


class UsageUpdateChannel:
    """Push channel carrying usage summaries to a single subscriber."""

    def __init__(self) -> None:
        self._sink: Optional[Sink] = None
        self._lock = threading.Lock()

    @property
    def has_listener(self) -> bool:
        with self._lock:
            return self._sink is not None

    def listen(self, sink: Sink) -> None:
        """Subscribe *sink*, replacing any previous subscriber."""
        with self._lock:
            self._sink = sink

    def cancel(self) -> None:
        with self._lock:
            self._sink = None

    def send(self, summaries: list[AppSummary]) -> bool:
        """Deliver *summaries* to the subscriber. Returns False if none."""
        with self._lock:
            sink = self._sink
        if sink is None:
            return False
        sink([s.to_dict() for s in summaries])
        return True


class UsageStatsPlugin:
    """Mediates platform usage statistics to the UI layer."""

    def __init__(
        self,
        provider: UsageStatsProvider,
        clock: Optional[Callable[[], datetime]] = None,
        aggregator: Optional[UsageAggregator] = None,
        icon_cache: Optional[IconCache] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.provider = provider
        self.clock = clock or (lambda: datetime.now().astimezone())
        self.aggregator = aggregator or UsageAggregator()
        self.icon_cache = icon_cache or IconCache(provider.load_app_icon)
        self.updates = UsageUpdateChannel()
        self._executor = executor
        self._methods: dict[str, Callable[[dict[str, Any]], Any]] = {
            "hasUsagePermission": lambda args: self.has_usage_permission(),
            "requestUsagePermission": lambda args: self.request_usage_permission(),
            "getUsageStats": self._handle_get_usage_stats,
            "getTodayUsageStats": lambda args: self.get_today_usage_stats(),
            "getWeeklyUsageStats": lambda args: self.get_weekly_usage_stats(),
            "getInstalledApps": lambda args: self.get_installed_apps(),
            "getAppIcon": self._handle_get_app_icon,
            "getBatchAppIcons": self._handle_get_batch_app_icons,
            "getCurrentForegroundApp": lambda args: self.get_current_foreground_app(),
        }

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    @property
    def methods(self) -> list[str]:
        return list(self._methods)

    def handle(self, method: str, arguments: Optional[dict[str, Any]] = None) -> Any:
        """Run *method* synchronously and return its JSON-ready result.

        Raises:
            NotImplementedMethodError: For an unknown method name.
            InvalidArgumentError: When a required argument is missing.
            CollaboratorError: When the platform query fails.
        """
        handler = self._methods.get(method)
        if handler is None:
            raise NotImplementedMethodError(f"Unknown method: {method}")
        return handler(arguments or {})

    def call(self, method: str, arguments: Optional[dict[str, Any]] = None) -> Future:
        """Run *method* on the worker pool; the Future carries result or error."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=4, thread_name_prefix="usage-plugin"
            )
        return self._executor.submit(self.handle, method, arguments)

    def dispose(self) -> None:
        """Release the worker pool, icon cache and update subscriber."""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        self.updates.cancel()
        self.icon_cache.clear()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def has_usage_permission(self) -> bool:
        """Return whether usage access is granted.

        Raises:
            CollaboratorError: When the platform cannot answer the check.
        """
        return self._check_permission()

    def request_usage_permission(self) -> None:
        self.provider.request_usage_permission()

    def get_usage_stats(
        self, start_ms: int, end_ms: int, error_code: str = "USAGE_STATS_ERROR"
    ) -> list[dict[str, Any]]:
        """Return classified usage for ``[start_ms, end_ms)``, busiest first."""
        if not self._check_permission(error_code):
            return []
        try:
            records = self.provider.query_usage_records(start_ms, end_ms)
            summaries = self.aggregator.aggregate(
                records, self.provider.resolve_display_name
            )
        except UsageError as exc:
            raise CollaboratorError(exc.message, code=error_code) from exc
        except Exception as exc:
            raise CollaboratorError(str(exc), code=error_code) from exc
        return [s.to_dict() for s in summaries]

    def get_today_usage_stats(self) -> list[dict[str, Any]]:
        start, end = today_window(self.clock())
        return self.get_usage_stats(
            to_epoch_ms(start), to_epoch_ms(end), error_code="TODAY_STATS_ERROR"
        )

    def get_weekly_usage_stats(self) -> list[dict[str, Any]]:
        start, end = weekly_window(self.clock())
        return self.get_usage_stats(
            to_epoch_ms(start), to_epoch_ms(end), error_code="WEEKLY_STATS_ERROR"
        )

    def get_installed_apps(self) -> list[dict[str, Any]]:
        """Return launchable apps sorted by name; unreadable packages are skipped."""
        try:
            packages = self.provider.list_launchable_packages()
        except Exception as exc:
            raise CollaboratorError(str(exc), code="INSTALLED_APPS_ERROR") from exc

        infos = []
        for package_id in packages:
            try:
                infos.append(self.provider.get_app_info(package_id))
            except Exception:
                logger.debug("Skipping unreadable package %s", package_id, exc_info=True)
        return [app.to_dict() for app in self.aggregator.describe_installed(infos)]

    def get_app_icon(self, package_id: str) -> Optional[str]:
        return self.icon_cache.get(package_id)

    def get_batch_app_icons(self, package_ids: list[str]) -> dict[str, Optional[str]]:
        try:
            return self.icon_cache.get_many(package_ids)
        except Exception as exc:
            raise CollaboratorError(str(exc), code="BATCH_ICONS_ERROR") from exc

    def get_current_foreground_app(self) -> Optional[dict[str, Any]]:
        """Return the most recently used app within the last minute, or None."""
        start, end = foreground_window(self.clock())
        try:
            if not self._check_permission():
                return None
            records = self.provider.query_usage_records(to_epoch_ms(start), to_epoch_ms(end))
            app = self.aggregator.find_foreground(
                records, self.provider.resolve_display_name
            )
        except Exception:
            logger.debug("Foreground app lookup failed", exc_info=True)
            return None
        return app.to_dict() if app is not None else None

    def send_usage_update(self, summaries: list[AppSummary]) -> bool:
        return self.updates.send(summaries)

    def _check_permission(self, error_code: Optional[str] = None) -> bool:
        try:
            return bool(self.provider.has_usage_permission())
        except UsageError as exc:
            raise CollaboratorError(exc.message, code=error_code) from exc
        except Exception as exc:
            raise CollaboratorError(str(exc), code=error_code) from exc

    # ------------------------------------------------------------------
    # Argument handling
    # ------------------------------------------------------------------

    def _handle_get_usage_stats(self, args: dict[str, Any]) -> list[dict[str, Any]]:
        start_ms = _int_argument(args, "startTime", 0)
        end_ms = _int_argument(args, "endTime", to_epoch_ms(self.clock()))
        return self.get_usage_stats(start_ms, end_ms)

    def _handle_get_app_icon(self, args: dict[str, Any]) -> Optional[str]:
        package_id = args.get("packageName")
        if package_id is None:
            raise InvalidArgumentError("Package name required")
        return self.get_app_icon(package_id)

    def _handle_get_batch_app_icons(self, args: dict[str, Any]) -> dict[str, Optional[str]]:
        package_ids = args.get("packageNames")
        if package_ids is None:
            raise InvalidArgumentError("Package names required")
        if not isinstance(package_ids, (list, tuple)):
            raise InvalidArgumentError("packageNames must be a list")
        return self.get_batch_app_icons(list(package_ids))


def _int_argument(args: dict[str, Any], name: str, default: int) -> int:
    value = args.get(name)
    if value is None:
        return default
    if isinstance(value, bool):
        raise InvalidArgumentError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"{name} must be an integer") from None
