"""
Category Tree

Cached parent -> children adjacency over the category forest, used to
expand a campaign's category into every descendant category.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Set

from .protocols import CategoryStoreProtocol

logger = logging.getLogger(__name__)


class CategoryTree:
    """
    Descendant resolution over a TTL cached adjacency map.

    Readers may see data up to ``ttl_seconds`` old. A lookup for an id the
    cache does not know forces one rebuild before answering, and
    ``invalidate()`` must be called whenever category data changes.
    """

    def __init__(
        self,
        category_store: CategoryStoreProtocol,
        ttl_seconds: int = 3600,
        time_source: Callable[[], float] = time.monotonic,
    ):
        self.category_store = category_store
        self.ttl_seconds = ttl_seconds
        self._time = time_source
        self._lock = asyncio.Lock()

        self._children: Optional[Dict[str, List[str]]] = None
        self._known_ids: Set[str] = set()
        self._descendants: Dict[str, Set[str]] = {}
        self._built_at: float = 0.0

    def invalidate(self) -> None:
        """Drop the adjacency map and all memoized descendant sets"""
        self._children = None
        self._known_ids = set()
        self._descendants = {}
        self._built_at = 0.0
        logger.debug("Category cache invalidated")

    def _is_fresh(self) -> bool:
        return (
            self._children is not None
            and self._time() - self._built_at < self.ttl_seconds
        )

    async def _rebuild(self) -> None:
        categories = await self.category_store.get_all()

        children: Dict[str, List[str]] = {}
        known: Set[str] = set()
        for category in categories:
            known.add(category.category_id)
            if category.parent_id is not None:
                children.setdefault(category.parent_id, []).append(category.category_id)

        # Sorted so traversal order is stable between rebuilds
        for child_ids in children.values():
            child_ids.sort()

        self._children = children
        self._known_ids = known
        self._descendants = {}
        self._built_at = self._time()
        logger.debug(f"Category cache rebuilt: {len(known)} categories")

    async def get_adjacency(self) -> Dict[str, List[str]]:
        """Parent id -> sorted child ids, rebuilt when expired"""
        if not self._is_fresh():
            async with self._lock:
                if not self._is_fresh():
                    await self._rebuild()
        return self._children

    async def contains(self, category_id: str) -> bool:
        """Whether the category exists, rebuilding once on a miss"""
        await self.get_adjacency()
        if category_id in self._known_ids:
            return True

        async with self._lock:
            await self._rebuild()
        return category_id in self._known_ids

    async def resolve_descendants(self, root_id: str) -> Set[str]:
        """
        Return root_id plus every category below it.

        Iterative depth-first walk with a visited set, so malformed data
        containing a cycle still terminates.
        """
        children = await self.get_adjacency()

        cached = self._descendants.get(root_id)
        if cached is not None:
            return set(cached)

        visited: Set[str] = {root_id}
        stack = [root_id]
        while stack:
            current = stack.pop()
            for child_id in children.get(current, []):
                if child_id in visited:
                    continue
                visited.add(child_id)
                stack.append(child_id)

        self._descendants[root_id] = visited
        return set(visited)


__all__ = ["CategoryTree"]
