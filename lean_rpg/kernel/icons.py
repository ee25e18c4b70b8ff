"""
Icon identifiers for achievements, skills and badges.

The backend and catalog refer to icons by name. Names are parsed into a
closed enumeration; unknown names resolve to DEFAULT_ICON instead of failing.
Presentation layers register one render callback per identifier on an
IconRegistry and get the default callback for anything unregistered.
"""

from enum import Enum
from typing import Callable, Dict, Generic, Optional, TypeVar

R = TypeVar("R")


class IconId(str, Enum):
    """Every icon the engine can hand to a presentation layer."""
    ZAP = "Zap"
    CALENDAR = "Calendar"
    STAR = "Star"
    TROPHY = "Trophy"
    CLIPBOARD_LIST = "ClipboardList"
    GIT_BRANCH = "GitBranch"
    FOOTPRINTS = "Footprints"
    CHECK_CIRCLE = "CheckCircle"
    EYE = "Eye"
    SHIELD_CHECK = "ShieldCheck"
    AWARD = "Award"


DEFAULT_ICON = IconId.AWARD

_BY_NORMALIZED_NAME: Dict[str, IconId] = {
    icon.value.lower().replace("-", "").replace("_", ""): icon for icon in IconId
}


def resolve_icon(name: Optional[str]) -> IconId:
    """
    Map an icon name to an IconId.

    Matching ignores case, dashes and underscores ("clipboard-list" ->
    CLIPBOARD_LIST). Missing or unknown names give DEFAULT_ICON.
    """
    if isinstance(name, IconId):
        return name
    if not name:
        return DEFAULT_ICON
    key = name.strip().lower().replace("-", "").replace("_", "")
    return _BY_NORMALIZED_NAME.get(key, DEFAULT_ICON)


class IconRegistry(Generic[R]):
    """Typed IconId -> render callback table with a mandatory fallback."""

    def __init__(self, default: Callable[[IconId], R]):
        self._default = default
        self._renderers: Dict[IconId, Callable[[IconId], R]] = {}

    def register(self, icon: IconId, renderer: Callable[[IconId], R]) -> None:
        self._renderers[icon] = renderer

    def render(self, icon: Optional[str]) -> R:
        """Render by identifier or raw name; unknown names use the default renderer."""
        resolved = resolve_icon(icon)
        renderer = self._renderers.get(resolved, self._default)
        return renderer(resolved)
