"""
Selection of models to record in a scan cycle.
"""

from typing import Iterable, Optional, Union

from ..state.models import OnlineTarget


def resolve_targets(
    listing: Iterable[Union[str, OnlineTarget]],
    allow_list: Optional[Iterable[str]] = None
) -> list[OnlineTarget]:
    """
    Deduplicate the online listing and apply the allow-list.

    Args:
        listing: Names (or OnlineTarget entries) reported online
        allow_list: Models to keep; empty or None keeps everything

    Returns:
        OnlineTarget entries in listing order, one per model
    """
    allowed = {name for name in (allow_list or []) if name}
    seen: set[str] = set()
    targets = []

    for entry in listing:
        target = entry if isinstance(entry, OnlineTarget) else OnlineTarget(str(entry).strip())

        if not target.name or target.name in seen:
            continue
        if allowed and target.name not in allowed:
            continue

        seen.add(target.name)
        targets.append(target)

    return targets
