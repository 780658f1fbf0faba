"""Usage aggregation for RealityCheck.

Turns raw per-package usage records into classified, display-ready
summaries. The aggregator holds no mutable state; the display-name
resolver is injected per call.
"""

import logging
from typing import Callable, Iterable, Optional

from realitycheck.core.classifier import CategoryClassifier, ProductivityClassifier
from realitycheck.core.errors import PackageNotFoundError
from realitycheck.core.models import (
    AppInfo,
    AppSummary,
    ForegroundApp,
    InstalledApp,
    UsageRecord,
)

logger = logging.getLogger(__name__)

NameResolver = Callable[[str], Optional[str]]


class UsageAggregator:
    """Filters, classifies and orders usage records.

    Output ordering is ``total_foreground_ms`` descending with ties broken
    by ascending ``package_id``, so results are deterministic.
    """

    def __init__(
        self,
        classifier: Optional[CategoryClassifier] = None,
        productivity: Optional[ProductivityClassifier] = None,
    ) -> None:
        self.classifier = classifier or CategoryClassifier()
        self.productivity = productivity or ProductivityClassifier()

    def aggregate(
        self,
        records: Iterable[UsageRecord],
        resolve_display_name: NameResolver,
        sync_time: Optional[int] = None,
    ) -> list[AppSummary]:
        """Build the usage summary for *records*.

        Records with no foreground time are dropped. Records whose display
        name cannot be resolved (app uninstalled since the data was
        recorded, or the lookup itself failed) are dropped individually
        and never abort the rest of the batch.
        """
        summaries: list[AppSummary] = []
        for record in records:
            if record.total_foreground_ms <= 0:
                continue

            display_name = _resolve(resolve_display_name, record.package_id)
            if display_name is None:
                continue

            category = self.classifier.classify(
                record.package_id, record.category_hint
            )
            summaries.append(
                AppSummary(
                    package_id=record.package_id,
                    display_name=display_name,
                    total_foreground_ms=record.total_foreground_ms,
                    last_used_at=record.last_used_at,
                    first_seen_at=record.first_seen_at,
                    category=category,
                    is_productive=self.productivity.is_productive(
                        record.package_id, category
                    ),
                    sync_time=sync_time,
                )
            )

        summaries.sort(key=lambda s: (-s.total_foreground_ms, s.package_id))
        return summaries

    def find_foreground(
        self,
        records: Iterable[UsageRecord],
        resolve_display_name: NameResolver,
    ) -> Optional[ForegroundApp]:
        """Return the most recently used app among *records*, or ``None``."""
        observed = [r for r in records if r.last_used_at > 0]
        if not observed:
            return None

        recent = max(observed, key=lambda r: r.last_used_at)
        display_name = _resolve(resolve_display_name, recent.package_id)
        if display_name is None:
            return None
        return ForegroundApp(
            package_id=recent.package_id,
            display_name=display_name,
            last_used_at=recent.last_used_at,
        )

    def describe_installed(self, apps: Iterable[AppInfo]) -> list[InstalledApp]:
        """Classify installed apps and sort them by display name."""
        result = []
        for info in apps:
            category = self.classifier.classify(info.package_id, info.category_hint)
            result.append(
                InstalledApp(
                    package_id=info.package_id,
                    display_name=info.label,
                    category=category,
                    is_productive=self.productivity.is_productive(
                        info.package_id, category
                    ),
                    is_system_app=info.is_system_app,
                )
            )
        result.sort(key=lambda app: app.display_name)
        return result


def _resolve(resolve_display_name: NameResolver, package_id: str) -> Optional[str]:
    try:
        name = resolve_display_name(package_id)
    except PackageNotFoundError:
        name = None
    except Exception:
        logger.debug("Skipping %s: display name lookup failed", package_id, exc_info=True)
        return None
    if name is None:
        logger.debug("Skipping %s: package no longer installed", package_id)
    return name
