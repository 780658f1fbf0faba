"""Tests for the UsageStatsPlugin request/response surface and update channel."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from realitycheck.core.errors import (
    CollaboratorError,
    InvalidArgumentError,
    NotImplementedMethodError,
    PackageNotFoundError,
    UsageError,
)
from realitycheck.core.models import (
    AppInfo,
    AppSummary,
    Category,
    CategoryHint,
    SyncStatus,
    UsageRecord,
)
from realitycheck.core.sync import SyncTracker
from realitycheck.core.windows import to_epoch_ms
from realitycheck.persistence.store import UsageStore
from realitycheck.platform.base import UsageStatsProvider
from realitycheck.platform.snapshot import SnapshotUsageProvider
from realitycheck.plugin import UsageStatsPlugin, UsageUpdateChannel

NOW = datetime(2024, 3, 15, 14, 30)

_APPS = {
    "com.whatsapp": AppInfo("com.whatsapp", "WhatsApp"),
    "com.slack": AppInfo("com.slack", "Slack"),
    "org.example.news": AppInfo("org.example.news", "Daily News", CategoryHint.NEWS),
}


def _get_app_info(package_id):
    try:
        return _APPS[package_id]
    except KeyError:
        raise PackageNotFoundError(package_id) from None


def _resolve(package_id):
    info = _APPS.get(package_id)
    return info.label if info else None


def _make_plugin(permission=True, records=None):
    provider = MagicMock(spec=UsageStatsProvider)
    provider.has_usage_permission.return_value = permission
    provider.query_usage_records.return_value = records if records is not None else [
        UsageRecord("com.whatsapp", 300, last_used_at=10),
        UsageRecord("com.slack", 900, last_used_at=30),
        UsageRecord("org.example.news", 0, last_used_at=5, category_hint=CategoryHint.NEWS),
        UsageRecord("com.uninstalled", 500, last_used_at=40),
    ]
    provider.get_app_info.side_effect = _get_app_info
    provider.resolve_display_name.side_effect = _resolve
    provider.list_launchable_packages.return_value = list(_APPS) + ["com.uninstalled"]
    provider.load_app_icon.side_effect = lambda p: f"icon:{p}" if p in _APPS else _get_app_info(p)
    plugin = UsageStatsPlugin(provider, clock=lambda: NOW)
    return plugin, provider


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestDispatch:

    def test_all_methods_registered(self):
        plugin, _ = _make_plugin()
        assert set(plugin.methods) == {
            "hasUsagePermission",
            "requestUsagePermission",
            "getUsageStats",
            "getTodayUsageStats",
            "getWeeklyUsageStats",
            "getInstalledApps",
            "getAppIcon",
            "getBatchAppIcons",
            "getCurrentForegroundApp",
        }

    def test_unknown_method(self):
        plugin, _ = _make_plugin()
        with pytest.raises(NotImplementedMethodError):
            plugin.handle("doSomething")

    def test_has_permission(self):
        plugin, _ = _make_plugin(permission=False)
        assert plugin.handle("hasUsagePermission") is False

    def test_request_permission(self):
        plugin, provider = _make_plugin()
        assert plugin.handle("requestUsagePermission") is None
        provider.request_usage_permission.assert_called_once()

    def test_call_returns_future(self):
        plugin, _ = _make_plugin()
        try:
            future = plugin.call("hasUsagePermission")
            assert future.result(timeout=5) is True
        finally:
            plugin.dispose()

    def test_call_future_carries_error(self):
        plugin, _ = _make_plugin()
        try:
            future = plugin.call("getAppIcon", {})
            with pytest.raises(InvalidArgumentError):
                future.result(timeout=5)
        finally:
            plugin.dispose()


# ---------------------------------------------------------------------------
# Usage queries
# ---------------------------------------------------------------------------

class TestUsageStats:

    def test_get_usage_stats_filters_and_sorts(self):
        plugin, provider = _make_plugin()
        result = plugin.handle("getUsageStats", {"startTime": 100, "endTime": 200})

        provider.query_usage_records.assert_called_once_with(100, 200)
        assert [r["packageName"] for r in result] == ["com.slack", "com.whatsapp"]
        assert result[0]["isProductive"] is True
        assert result[1]["category"] == "Social Media"

    def test_get_usage_stats_defaults(self):
        plugin, provider = _make_plugin()
        plugin.handle("getUsageStats", {})
        provider.query_usage_records.assert_called_once_with(0, to_epoch_ms(NOW))

    def test_today_window(self):
        plugin, provider = _make_plugin()
        plugin.handle("getTodayUsageStats")
        provider.query_usage_records.assert_called_once_with(
            to_epoch_ms(datetime(2024, 3, 15)), to_epoch_ms(NOW)
        )

    def test_weekly_window(self):
        plugin, provider = _make_plugin()
        plugin.handle("getWeeklyUsageStats")
        provider.query_usage_records.assert_called_once_with(
            to_epoch_ms(datetime(2024, 3, 8)), to_epoch_ms(NOW)
        )

    def test_no_permission_returns_empty(self):
        plugin, provider = _make_plugin(permission=False)
        assert plugin.handle("getTodayUsageStats") == []
        provider.query_usage_records.assert_not_called()

    @pytest.mark.parametrize(
        "method, code",
        [
            ("getUsageStats", "USAGE_STATS_ERROR"),
            ("getTodayUsageStats", "TODAY_STATS_ERROR"),
            ("getWeeklyUsageStats", "WEEKLY_STATS_ERROR"),
        ],
    )
    def test_fetch_failure_is_typed_error(self, method, code):
        plugin, provider = _make_plugin()
        provider.query_usage_records.side_effect = RuntimeError("service died")
        with pytest.raises(CollaboratorError) as excinfo:
            plugin.handle(method, {})
        assert excinfo.value.code == code
        assert isinstance(excinfo.value.__cause__, RuntimeError)


# ---------------------------------------------------------------------------
# Installed apps, icons, foreground
# ---------------------------------------------------------------------------

class TestInstalledApps:

    def test_sorted_and_classified(self):
        plugin, _ = _make_plugin()
        result = plugin.handle("getInstalledApps")
        assert [a["appName"] for a in result] == ["Daily News", "Slack", "WhatsApp"]
        assert result[0]["category"] == "News"
        assert result[0]["isSystemApp"] is False

    def test_listing_failure_is_typed_error(self):
        plugin, provider = _make_plugin()
        provider.list_launchable_packages.side_effect = RuntimeError("pm down")
        with pytest.raises(CollaboratorError) as excinfo:
            plugin.handle("getInstalledApps")
        assert excinfo.value.code == "INSTALLED_APPS_ERROR"


class TestIcons:

    def test_get_app_icon_requires_package(self):
        plugin, provider = _make_plugin()
        with pytest.raises(InvalidArgumentError):
            plugin.handle("getAppIcon", {})
        provider.load_app_icon.assert_not_called()

    def test_get_app_icon_cached(self):
        plugin, provider = _make_plugin()
        assert plugin.handle("getAppIcon", {"packageName": "com.slack"}) == "icon:com.slack"
        assert plugin.handle("getAppIcon", {"packageName": "com.slack"}) == "icon:com.slack"
        provider.load_app_icon.assert_called_once_with("com.slack")

    def test_get_app_icon_missing_is_none(self):
        plugin, _ = _make_plugin()
        assert plugin.handle("getAppIcon", {"packageName": "com.gone"}) is None

    def test_batch_icons_requires_list(self):
        plugin, _ = _make_plugin()
        with pytest.raises(InvalidArgumentError):
            plugin.handle("getBatchAppIcons", {})

    def test_batch_icons(self):
        plugin, _ = _make_plugin()
        result = plugin.handle("getBatchAppIcons", {"packageNames": ["com.slack", "com.gone"]})
        assert result == {"com.slack": "icon:com.slack", "com.gone": None}


class TestForeground:

    def test_most_recent_resolvable_app(self):
        plugin, provider = _make_plugin(records=[
            UsageRecord("com.whatsapp", 10, last_used_at=10),
            UsageRecord("com.slack", 10, last_used_at=30),
        ])
        assert plugin.handle("getCurrentForegroundApp") == {
            "packageName": "com.slack",
            "appName": "Slack",
            "lastUsed": 30,
        }
        provider.query_usage_records.assert_called_once_with(
            to_epoch_ms(datetime(2024, 3, 15, 14, 29)), to_epoch_ms(NOW)
        )

    def test_most_recent_uninstalled_gives_none(self):
        plugin, _ = _make_plugin()
        assert plugin.handle("getCurrentForegroundApp") is None

    def test_no_permission_gives_none(self):
        plugin, _ = _make_plugin(permission=False)
        assert plugin.handle("getCurrentForegroundApp") is None

    def test_failure_gives_none(self):
        plugin, provider = _make_plugin()
        provider.query_usage_records.side_effect = RuntimeError("boom")
        assert plugin.handle("getCurrentForegroundApp") is None


# ---------------------------------------------------------------------------
# Update channel
# ---------------------------------------------------------------------------

def _summary(package_id="com.slack") -> AppSummary:
    return AppSummary(package_id, "Slack", 100, 1, 0, Category.PRODUCTIVITY, True)


class TestUpdateChannel:

    def test_send_without_listener(self):
        channel = UsageUpdateChannel()
        assert channel.send([_summary()]) is False

    def test_send_delivers_dicts(self):
        channel = UsageUpdateChannel()
        sink = MagicMock()
        channel.listen(sink)
        assert channel.send([_summary()]) is True
        sink.assert_called_once_with([_summary().to_dict()])

    def test_new_listener_replaces_previous(self):
        channel = UsageUpdateChannel()
        first, second = MagicMock(), MagicMock()
        channel.listen(first)
        channel.listen(second)
        channel.send([_summary()])
        first.assert_not_called()
        second.assert_called_once()

    def test_cancel(self):
        channel = UsageUpdateChannel()
        channel.listen(MagicMock())
        channel.cancel()
        assert channel.has_listener is False

    def test_plugin_dispose_clears_listener_and_cache(self):
        plugin, _ = _make_plugin()
        plugin.updates.listen(MagicMock())
        plugin.handle("getAppIcon", {"packageName": "com.slack"})
        plugin.dispose()
        assert plugin.updates.has_listener is False
        assert len(plugin.icon_cache) == 0
        assert plugin.send_usage_update([_summary()]) is False

    def test_synced_batch_reaches_listener(self):
        plugin, provider = _make_plugin()
        store = UsageStore(":memory:")
        store.init_db()
        sink = MagicMock()
        plugin.updates.listen(sink)
        tracker = SyncTracker(
            provider, store, clock=lambda: NOW, on_synced=plugin.send_usage_update
        )
        try:
            assert tracker.run_cycle().status is SyncStatus.SUCCEEDED
        finally:
            store.close()

        sink.assert_called_once()
        [payload] = sink.call_args.args
        assert [r["packageName"] for r in payload] == ["com.slack", "com.whatsapp"]
        assert all(r["syncTime"] == to_epoch_ms(NOW) for r in payload)


# ---------------------------------------------------------------------------
# Permission check failures
# ---------------------------------------------------------------------------

class TestPermissionCheckFailure:

    def test_has_permission_raises_typed_error(self):
        plugin, provider = _make_plugin()
        provider.has_usage_permission.side_effect = RuntimeError("service died")
        with pytest.raises(CollaboratorError):
            plugin.handle("hasUsagePermission")

    @pytest.mark.parametrize(
        "method, code",
        [
            ("getUsageStats", "USAGE_STATS_ERROR"),
            ("getTodayUsageStats", "TODAY_STATS_ERROR"),
            ("getWeeklyUsageStats", "WEEKLY_STATS_ERROR"),
        ],
    )
    def test_usage_queries_raise_typed_error(self, method, code):
        plugin, provider = _make_plugin()
        provider.has_usage_permission.side_effect = RuntimeError("service died")
        with pytest.raises(CollaboratorError) as excinfo:
            plugin.handle(method, {})
        assert excinfo.value.code == code
        provider.query_usage_records.assert_not_called()

    def test_unreadable_snapshot_is_not_empty_result(self, tmp_path):
        plugin = UsageStatsPlugin(
            SnapshotUsageProvider(str(tmp_path / "missing.json")), clock=lambda: NOW
        )
        with pytest.raises(UsageError) as excinfo:
            plugin.handle("getTodayUsageStats")
        assert excinfo.value.code == "TODAY_STATS_ERROR"

    def test_foreground_gives_none(self):
        plugin, provider = _make_plugin()
        provider.has_usage_permission.side_effect = RuntimeError("service died")
        assert plugin.handle("getCurrentForegroundApp") is None


# ---------------------------------------------------------------------------
# Argument validation
# ---------------------------------------------------------------------------

class TestArgumentValidation:

    @pytest.mark.parametrize(
        "arguments",
        [
            {"startTime": "yesterday"},
            {"endTime": "now"},
            {"startTime": [1, 2]},
            {"startTime": True},
        ],
    )
    def test_bad_time_is_invalid_argument(self, arguments):
        plugin, provider = _make_plugin()
        with pytest.raises(InvalidArgumentError):
            plugin.handle("getUsageStats", arguments)
        provider.query_usage_records.assert_not_called()

    def test_numeric_strings_accepted(self):
        plugin, provider = _make_plugin()
        plugin.handle("getUsageStats", {"startTime": "100", "endTime": "200"})
        provider.query_usage_records.assert_called_once_with(100, 200)

    @pytest.mark.parametrize("package_names", ["com.slack", 42, {"com.slack": 1}])
    def test_batch_icons_rejects_non_list(self, package_names):
        plugin, provider = _make_plugin()
        with pytest.raises(InvalidArgumentError):
            plugin.handle("getBatchAppIcons", {"packageNames": package_names})
        provider.load_app_icon.assert_not_called()
