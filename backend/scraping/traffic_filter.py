"""
Decides which observed responses are worth recording.

The decision is made from request metadata alone so that rejected responses
never have their bodies read. The host/path deny list is data, kept in
``deny_list.json`` next to this module.
"""

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import FrozenSet, Optional, Tuple

ASSET_RESOURCE_TYPES: FrozenSet[str] = frozenset({"image", "stylesheet", "script", "font", "media"})
DEFAULT_DENY_LIST_PATH = Path(__file__).resolve().parent / "deny_list.json"


@dataclass(frozen=True)
class DenyList:
    """URL patterns for analytics, tag-management, consent, chat and static CDNs."""

    prefixes: Tuple[str, ...] = ()
    contains: Tuple[str, ...] = ()
    suffixes: Tuple[str, ...] = ()

    def matches(self, url: str) -> bool:
        return (
            url.startswith(self.prefixes)
            or any(fragment in url for fragment in self.contains)
            or url.endswith(self.suffixes)
        )


EMPTY_DENY_LIST = DenyList()


def _load_json_list(data: dict, key: str) -> Tuple[str, ...]:
    values = data.get(key) or []
    if not isinstance(values, list):
        raise ValueError(f"Deny list key '{key}' must be a list of strings.")
    return tuple(str(value) for value in values if str(value).strip())


def load_deny_list(path: Optional[Path] = None) -> DenyList:
    """Read a deny list file. Omit ``path`` to use the bundled, cached list."""
    if path is None:
        return _default_deny_list()
    data = json.loads(Path(path).read_text(encoding="utf-8") or "{}")
    return DenyList(
        prefixes=_load_json_list(data, "prefixes"),
        contains=_load_json_list(data, "contains"),
        suffixes=_load_json_list(data, "suffixes"),
    )


@lru_cache(maxsize=1)
def _default_deny_list() -> DenyList:
    return load_deny_list(DEFAULT_DENY_LIST_PATH)


def should_capture(
    method: str,
    resource_type: str,
    url: str,
    deny_list: Optional[DenyList] = None,
) -> bool:
    """
    Return True when a response should be recorded.

    Policy, first match wins:
    - rendering assets (image, stylesheet, script, font, media) are rejected;
    - OPTIONS preflight requests are rejected;
    - URLs on the deny list are rejected;
    - everything else is kept.
    """
    if (resource_type or "").lower() in ASSET_RESOURCE_TYPES:
        return False
    if (method or "").upper() == "OPTIONS":
        return False
    deny = deny_list if deny_list is not None else load_deny_list()
    if deny.matches(url or ""):
        return False
    return True


def body_kind(content_type: Optional[str]) -> Optional[str]:
    """Classify a content type as ``"json"``, ``"text"`` or None (metadata only)."""
    value = (content_type or "").strip().lower()
    if "application/json" in value:
        return "json"
    if value.startswith("text/"):
        return "text"
    return None
