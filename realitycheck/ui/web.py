"""Web-based dashboard API for RealityCheck.

A lightweight Flask app exposing the plugin operations and the pending
background-sync batch as JSON:
- Permission state
- Today / weekly / custom-window usage
- Installed apps, icons and the current foreground app
- Summaries stored by the last background sync
"""

import logging
import threading
from typing import Any, Optional

from flask import Flask, jsonify, request

from realitycheck.core.errors import InvalidArgumentError, UsageError

logger = logging.getLogger(__name__)

# Will be set by start_dashboard()
_plugin = None  # type: Optional[Any]  # UsageStatsPlugin
_store = None  # type: Optional[Any]  # UsageStore

_STATUS_BY_CODE = {
    "INVALID_ARGUMENT": 400,
    "NOT_IMPLEMENTED": 404,
}


def create_flask_app() -> Flask:
    app = Flask(__name__)

    @app.errorhandler(UsageError)
    def usage_error(exc: UsageError):
        status = _STATUS_BY_CODE.get(exc.code, 502)
        return jsonify({"error": exc.code, "message": exc.message}), status

    @app.route("/api/permission")
    def api_permission():
        if _plugin is None:
            return jsonify({"error": "not initialized"}), 503
        return jsonify({"granted": _plugin.handle("hasUsagePermission")})

    @app.route("/api/permission/request", methods=["POST"])
    def api_request_permission():
        if _plugin is None:
            return jsonify({"error": "not initialized"}), 503
        _plugin.handle("requestUsagePermission")
        return jsonify({"ok": True})

    @app.route("/api/usage")
    def api_usage():
        if _plugin is None:
            return jsonify({"error": "not initialized"}), 503
        args = {
            "startTime": _int_arg("start"),
            "endTime": _int_arg("end"),
        }
        return jsonify(_plugin.handle("getUsageStats", args))

    @app.route("/api/usage/today")
    def api_usage_today():
        if _plugin is None:
            return jsonify({"error": "not initialized"}), 503
        return jsonify(_plugin.handle("getTodayUsageStats"))

    @app.route("/api/usage/weekly")
    def api_usage_weekly():
        if _plugin is None:
            return jsonify({"error": "not initialized"}), 503
        return jsonify(_plugin.handle("getWeeklyUsageStats"))

    @app.route("/api/apps")
    def api_apps():
        if _plugin is None:
            return jsonify({"error": "not initialized"}), 503
        return jsonify(_plugin.handle("getInstalledApps"))

    @app.route("/api/foreground")
    def api_foreground():
        if _plugin is None:
            return jsonify({"error": "not initialized"}), 503
        return jsonify({"app": _plugin.handle("getCurrentForegroundApp")})

    @app.route("/api/icons/<package_name>")
    def api_icon(package_name: str):
        if _plugin is None:
            return jsonify({"error": "not initialized"}), 503
        icon = _plugin.handle("getAppIcon", {"packageName": package_name})
        return jsonify({"packageName": package_name, "icon": icon})

    @app.route("/api/icons", methods=["POST"])
    def api_icons():
        if _plugin is None:
            return jsonify({"error": "not initialized"}), 503
        body = request.get_json(silent=True) or {}
        return jsonify(_plugin.handle("getBatchAppIcons", body))

    @app.route("/api/pending")
    def api_pending():
        if _store is None:
            return jsonify({"error": "not initialized"}), 503
        return jsonify([s.to_dict() for s in _store.get_pending()])

    @app.route("/api/pending", methods=["DELETE"])
    def api_clear_pending():
        if _store is None:
            return jsonify({"error": "not initialized"}), 503
        _store.clear_pending()
        return jsonify({"ok": True})

    return app


def _int_arg(name: str) -> Optional[int]:
    value = request.args.get(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise InvalidArgumentError(f"{name} must be epoch milliseconds") from exc


def start_dashboard(plugin: Any, store: Any, host: str = "127.0.0.1", port: int = 5123) -> threading.Thread:
    """Start the dashboard server in a daemon thread."""
    global _plugin, _store
    _plugin = plugin
    _store = store
    flask_app = create_flask_app()

    def _serve() -> None:
        try:
            flask_app.run(host=host, port=port, debug=False, use_reloader=False)
        except Exception:
            logger.exception("Dashboard server stopped")

    thread = threading.Thread(target=_serve, name="dashboard", daemon=True)
    thread.start()
    logger.info("Dashboard running at http://%s:%d", host, port)
    return thread
