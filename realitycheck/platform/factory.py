"""Factory for creating the UsageStatsProvider for the current host."""

import sys
from typing import Any

from realitycheck.platform.base import UsageStatsProvider


def create_usage_provider(config: dict[str, Any]) -> UsageStatsProvider:
    """Return the provider matching *config* and the current host.

    A configured ``snapshot_path`` always wins, so exported device data
    can be inspected on any machine.

    Raises:
        OSError: If no provider is available for the current host.
    """
    snapshot_path = config.get("snapshot_path")
    if snapshot_path:
        from realitycheck.platform.snapshot import SnapshotUsageProvider
        return SnapshotUsageProvider(snapshot_path)

    raise OSError(
        f"No usage-statistics provider for platform {sys.platform!r}. "
        "Set 'snapshot_path' in the config to read an exported usage snapshot."
    )
