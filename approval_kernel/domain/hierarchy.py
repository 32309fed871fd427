"""
Reporting hierarchy (``approval_kernel.domain.hierarchy``).

Responsibility
--------------
Walks an actor's reporting chain upward to find the nearest superior
holding an approval role.

Architecture position
---------------------
**Kernel domain layer**.  Reads actors through ``DirectoryPort``; the
SQL implementation lives in ``services.directory``, the in-memory one
below.

Invariants enforced
-------------------
* The walk is bounded: at most ``max_depth`` hops, and a revisited actor
  ends the walk.  Both outcomes fail closed (empty chain).
* The starting actor is never part of its own chain.

Failure modes
-------------
* None raised.  Cycles and depth overflow are logged and return ``[]``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from approval_kernel.domain.workflow import APPROVAL_ROLES, Role
from approval_kernel.logging_config import get_logger

logger = get_logger("domain.hierarchy")

DEFAULT_MAX_DEPTH = 32


@dataclass(frozen=True)
class ActorInfo:
    """Read-only view of a directory actor."""

    id: str
    role: Role = Role.REQUESTER
    name: str = ""
    reports_to_id: str | None = None
    active: bool = True


@dataclass(frozen=True)
class ChainLink:
    """One hop of a resolved reporting chain."""

    actor_id: str
    role: Role
    depth: int


@runtime_checkable
class DirectoryPort(Protocol):
    """Read access to the organisation's actor directory."""

    def get_actor(self, actor_id: str) -> ActorInfo | None: ...

    def get_superior(self, actor_id: str) -> ActorInfo | None: ...


class InMemoryDirectory:
    """Dictionary-backed ``DirectoryPort`` for tests and embedding."""

    def __init__(self, actors: Iterable[ActorInfo] = ()):
        self._actors: dict[str, ActorInfo] = {}
        for actor in actors:
            self.add(actor)

    def add(self, actor: ActorInfo) -> ActorInfo:
        self._actors[actor.id] = actor
        return actor

    def get_actor(self, actor_id: str) -> ActorInfo | None:
        return self._actors.get(actor_id)

    def get_superior(self, actor_id: str) -> ActorInfo | None:
        actor = self._actors.get(actor_id)
        if actor is None or actor.reports_to_id is None:
            return None
        return self._actors.get(actor.reports_to_id)


class HierarchyResolver:
    """Bounded upward walk over a ``DirectoryPort``."""

    def __init__(self, directory: DirectoryPort, max_depth: int = DEFAULT_MAX_DEPTH):
        if max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {max_depth}")
        self._directory = directory
        self._max_depth = max_depth

    @property
    def directory(self) -> DirectoryPort:
        return self._directory

    def resolve(
        self,
        user_id: str,
        target_roles: Iterable[Role] = APPROVAL_ROLES,
    ) -> list[ChainLink]:
        """
        Return the path from ``user_id``'s first superior up to and including
        the first active actor whose role is in ``target_roles``.

        Returns ``[]`` when no such actor exists, when ``user_id`` is unknown,
        when a cycle is detected, or when ``max_depth`` is exceeded.
        """
        targets = frozenset(Role.coerce(r) for r in target_roles)
        if self._directory.get_actor(user_id) is None:
            return []

        chain: list[ChainLink] = []
        visited = {user_id}
        current_id = user_id
        for depth in range(1, self._max_depth + 1):
            superior = self._directory.get_superior(current_id)
            if superior is None:
                return []
            if superior.id in visited:
                logger.warning(
                    "hierarchy_cycle_detected",
                    extra={"start_actor_id": user_id, "cycle_at": superior.id},
                )
                return []
            visited.add(superior.id)
            link = ChainLink(
                actor_id=superior.id,
                role=Role.coerce(superior.role),
                depth=depth,
            )
            chain.append(link)
            if superior.active and link.role in targets:
                return chain
            current_id = superior.id

        logger.warning(
            "hierarchy_depth_exceeded",
            extra={"start_actor_id": user_id, "max_depth": self._max_depth},
        )
        return []

    def nearest(
        self,
        user_id: str,
        target_roles: Iterable[Role] = APPROVAL_ROLES,
    ) -> ChainLink | None:
        chain = self.resolve(user_id, target_roles)
        return chain[-1] if chain else None
