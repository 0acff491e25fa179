"""
identity.py

Identity Manager: hands out stable identifiers for placed items and architectural objects.
Identifiers are random UUIDs, never derived from geometry and never reused once issued.
"""

import uuid
import logging
import dataclasses
from typing import Iterable, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
# Opaque stable identifier (string form of a UUID4 for anything created in-process)
StableId = str


class IdentityManager:
    """Issues process-unique stable identifiers."""

    def __init__(self):
        self._issued: Set[StableId] = set()

    def assign(self, avoid: Optional[Iterable[StableId]] = None) -> StableId:
        """
        Returns a fresh identifier distinct from everything issued so far.

        Args:
            avoid: Extra identifiers the result must not collide with (e.g. ids already in a scene
                   that were issued by another manager).
        """
        blocked = set(avoid) if avoid is not None else set()
        while True:
            candidate = str(uuid.uuid4())
            if candidate not in self._issued and candidate not in blocked:
                self._issued.add(candidate)
                return candidate

    def ensure(self, item: T) -> T:
        """Returns the item unchanged if it carries an identifier, else a copy with a new one."""
        if getattr(item, "stable_id", None) is not None:
            self._issued.add(item.stable_id)  # type: ignore[attr-defined]
            return item
        return dataclasses.replace(item, stable_id=self.assign())  # type: ignore[type-var]
