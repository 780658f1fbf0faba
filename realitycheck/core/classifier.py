"""App classifiers for RealityCheck.

Maps package identifiers to a Category and a productivity flag. Both
classifiers are driven by fixed lookup tables: a package listed in the
priority table always wins over whatever category the platform assigned,
because platform categories for messaging, short-video and game apps are
often generic or missing.
"""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from realitycheck.core.models import Category, CategoryHint

_SOCIAL = Category.SOCIAL_MEDIA
_GAMING = Category.GAMING
_STREAMING = Category.STREAMING
_PRODUCTIVITY = Category.PRODUCTIVITY

PRIORITY_CATEGORIES: Mapping[str, Category] = MappingProxyType({
    # Social media
    "com.instagram.android": _SOCIAL,
    "com.zhiliaoapp.musically": _SOCIAL,       # TikTok
    "com.ss.android.ugc.trill": _SOCIAL,       # TikTok
    "com.google.android.youtube": _SOCIAL,
    "com.twitter.android": _SOCIAL,
    "com.twitter.android.lite": _SOCIAL,
    "com.snapchat.android": _SOCIAL,
    "com.facebook.katana": _SOCIAL,
    "com.facebook.lite": _SOCIAL,
    "com.reddit.frontpage": _SOCIAL,
    "com.whatsapp": _SOCIAL,
    "org.telegram.messenger": _SOCIAL,
    # Gaming
    "com.tencent.ig": _GAMING,                 # PUBG Mobile
    "com.pubg.imobile": _GAMING,               # BGMI
    "com.activision.callofduty.shooter": _GAMING,
    "com.dts.freefireth": _GAMING,
    "com.dts.freefiremax": _GAMING,
    "com.supercell.clashofclans": _GAMING,
    "com.miHoYo.GenshinImpact": _GAMING,
    "com.innersloth.spacemafia": _GAMING,      # Among Us
    "com.roblox.client": _GAMING,
    "com.mojang.minecraftpe": _GAMING,
    "com.supercell.clashroyale": _GAMING,
    "com.kiloo.subwaysurf": _GAMING,
    "com.king.candycrushsaga": _GAMING,
    "com.epicgames.fortnite": _GAMING,
    # Streaming
    "com.netflix.mediaclient": _STREAMING,
    "com.amazon.avod.thirdpartyclient": _STREAMING,
    "com.disney.disneyplus": _STREAMING,
    "com.spotify.music": _STREAMING,
    "tv.twitch.android.app": _STREAMING,
    "com.hulu.plus": _STREAMING,
    "com.hbo.hbonow": _STREAMING,
    # Productivity
    "com.google.android.apps.docs": _PRODUCTIVITY,
    "com.google.android.apps.docs.editors.docs": _PRODUCTIVITY,
    "com.google.android.apps.docs.editors.sheets": _PRODUCTIVITY,
    "com.microsoft.office.word": _PRODUCTIVITY,
    "com.microsoft.office.excel": _PRODUCTIVITY,
    "com.microsoft.teams": _PRODUCTIVITY,
    "com.slack": _PRODUCTIVITY,
    "com.notion.id": _PRODUCTIVITY,
    "com.todoist": _PRODUCTIVITY,
    "com.duolingo": _PRODUCTIVITY,
    "com.linkedin.android": _PRODUCTIVITY,
})

HINT_CATEGORIES: Mapping[CategoryHint, Category] = MappingProxyType({
    CategoryHint.GAME: Category.GAMING,
    CategoryHint.AUDIO: Category.STREAMING,
    CategoryHint.VIDEO: Category.STREAMING,
    CategoryHint.IMAGE: Category.CREATIVE,
    CategoryHint.SOCIAL: Category.SOCIAL_MEDIA,
    CategoryHint.NEWS: Category.NEWS,
    CategoryHint.MAPS: Category.PRODUCTIVITY,
    CategoryHint.PRODUCTIVITY: Category.PRODUCTIVITY,
})

PRODUCTIVE_APPS: frozenset[str] = frozenset({
    "com.google.android.apps.docs",
    "com.google.android.apps.docs.editors.docs",
    "com.google.android.apps.docs.editors.sheets",
    "com.microsoft.office.word",
    "com.microsoft.office.excel",
    "com.microsoft.teams",
    "com.slack",
    "com.notion.id",
    "com.todoist",
    "com.duolingo",
    "com.linkedin.android",
})


class CategoryClassifier:
    """Classifies a package into a Category.

    Evaluation order: priority table, then the platform hint, then
    ``Category.OTHER``.
    """

    def __init__(self, extra: Optional[Mapping[str, Category]] = None) -> None:
        table = dict(PRIORITY_CATEGORIES)
        if extra:
            table.update(extra)
        self.table: Mapping[str, Category] = MappingProxyType(table)

    def classify(
        self, package_id: str, hint: Optional[CategoryHint] = None
    ) -> Category:
        """Return the Category for *package_id*. Never raises."""
        category = self.table.get(package_id)
        if category is not None:
            return category
        if hint is not None:
            return HINT_CATEGORIES.get(hint, Category.OTHER)
        return Category.OTHER

    @staticmethod
    def load_table(path: str) -> dict[str, Category]:
        """Deserialize extra priority entries from a JSON file.

        The file must contain a JSON object mapping package ids to
        category labels (e.g. ``"Gaming"``).
        """
        with open(Path(path), "r", encoding="utf-8") as fh:
            data = json.load(fh)
        return categories_from_config(data)

    @staticmethod
    def save_table(table: Mapping[str, Category], path: str) -> None:
        """Serialize priority entries to a JSON file."""
        file_path = Path(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        data = {package: category.value for package, category in table.items()}
        with open(file_path, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)


class ProductivityClassifier:
    """Decides whether an app counts as productive time."""

    def __init__(self, extra: Iterable[str] = ()) -> None:
        self.allow_list: frozenset[str] = PRODUCTIVE_APPS | frozenset(extra)

    def is_productive(self, package_id: str, category: Category) -> bool:
        if package_id in self.allow_list:
            return True
        return category is Category.PRODUCTIVITY


def categories_from_config(entries: Mapping[str, str]) -> dict[str, Category]:
    """Convert ``{package: label}`` config entries to Category values.

    Raises ValueError for an unknown label.
    """
    return {package: Category(label) for package, label in entries.items()}
