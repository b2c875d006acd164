"""Longest dependency chains among live tickets."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Set, Tuple

from ticketflow.c1_ticket_models.ticket import Ticket

logger = logging.getLogger(__name__)

DEFAULT_PATH_LIMIT = 5


@dataclass(frozen=True)
class CriticalPath:
    """Ticket IDs from a root (nothing depends on it) down to a leaf."""

    ids: Tuple[str, ...]

    def __len__(self):
        return len(self.ids)

    @property
    def key(self) -> str:
        return "->".join(self.ids)

    def to_dict(self) -> Dict:
        return {"ids": list(self.ids), "length": len(self.ids)}


class CriticalPathAnalyzer:
    """Enumerates every maximal dependency chain and ranks them by length."""

    def __init__(self, default_limit: int = DEFAULT_PATH_LIMIT):
        self.default_limit = default_limit if default_limit > 0 else DEFAULT_PATH_LIMIT

    def compute(self, tickets: Iterable[Ticket], limit: int = 0) -> List[CriticalPath]:
        """
        Return the longest chains, longest first, ties by joined ID sequence.

        Args:
            tickets: Ticket snapshot; DONE and CANCELLED tickets are ignored
            limit: Maximum number of chains; values <= 0 use the default

        Returns:
            Up to ``limit`` distinct chains
        """
        if limit <= 0:
            limit = self.default_limit

        deps = self._live_dependencies(tickets)
        if not deps:
            return []

        chains: Dict[str, Tuple[str, ...]] = {}
        for root in self._roots(deps):
            for chain in self._walk(root, deps):
                chains.setdefault("->".join(chain), chain)

        ranked = sorted(chains.items(), key=lambda item: (-len(item[1]), item[0]))
        logger.debug(f"Enumerated {len(ranked)} dependency chain(s) over {len(deps)} live ticket(s)")
        return [CriticalPath(ids=chain) for _, chain in ranked[:limit]]

    @staticmethod
    def _live_dependencies(tickets: Iterable[Ticket]) -> Dict[str, List[str]]:
        live = {t.id: t for t in tickets if t.is_live}
        return {
            ticket_id: sorted({d for d in ticket.depends_on if d in live and d != ticket_id})
            for ticket_id, ticket in live.items()
        }

    @staticmethod
    def _roots(deps: Dict[str, List[str]]) -> List[str]:
        """Live tickets nothing depends on; every ticket when cycles leave none."""
        depended_on: Set[str] = {d for targets in deps.values() for d in targets}
        roots = sorted(t for t in deps if t not in depended_on)
        return roots or sorted(deps)

    @staticmethod
    def _walk(root: str, deps: Dict[str, List[str]]) -> List[Tuple[str, ...]]:
        """All maximal chains from ``root``; a node is never re-entered on one path."""
        chains: List[Tuple[str, ...]] = []
        path = [root]
        on_path = {root}
        # Each frame: (node, dependencies not on the path when it was entered, next index)
        stack = [[root, [d for d in deps[root] if d not in on_path], 0]]

        while stack:
            frame = stack[-1]
            node, candidates, idx = frame
            if not candidates:
                chains.append(tuple(path))
            if idx >= len(candidates):
                stack.pop()
                path.pop()
                on_path.discard(node)
                continue

            frame[2] = idx + 1
            nxt = candidates[idx]
            path.append(nxt)
            on_path.add(nxt)
            stack.append([nxt, [d for d in deps[nxt] if d not in on_path], 0])
            # leaf frames record their chain on the next loop and pop immediately

        return chains


def compute_critical_paths(tickets: Iterable[Ticket], limit: int = 0) -> List[List[str]]:
    """Plain ID-list form of :meth:`CriticalPathAnalyzer.compute`."""
    return [list(p.ids) for p in CriticalPathAnalyzer().compute(tickets, limit)]
