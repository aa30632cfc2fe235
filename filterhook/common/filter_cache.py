"""
Filter Description Cache

Memoizes abuse filter descriptions by filter id for the process lifetime.
Descriptions change rarely and the lookup costs an API round trip per hit.
"""

from typing import Dict, Optional


class FilterDescriptionCache:
    """
    Write-once-per-key map of filter id -> public description.

    Only successful lookups are stored; placeholder text for private or
    unreachable filters is never cached so a later lookup can still fill
    the entry.
    """

    def __init__(self):
        self._descriptions: Dict[int, str] = {}

    def __len__(self) -> int:
        return len(self._descriptions)

    def __contains__(self, filter_id: int) -> bool:
        return filter_id in self._descriptions

    def get(self, filter_id: int) -> Optional[str]:
        """Cached description, or None on a miss"""
        return self._descriptions.get(filter_id)

    def put(self, filter_id: int, description: str) -> str:
        """
        Store a description unless one is already cached.

        Args:
            filter_id: Numeric filter id
            description: Description returned by the wiki

        Returns:
            The description now held for this id
        """
        return self._descriptions.setdefault(filter_id, description)

    def clear(self) -> None:
        self._descriptions.clear()
