"""
SqlActorDirectory -- ``DirectoryPort`` over the actors/positions tables.

Responsibility:
    Looks up actors and their superiors for the hierarchy resolver.  A
    superior is the actor named by ``reports_to_id``; when that is unset,
    the active holder of the nearest position above the actor's own that
    has one.  Positions nobody holds are walked past.

Architecture position:
    Kernel > Services.  Read-only; each lookup runs in its own short
    session so the directory can be shared across engine calls.

Failure modes:
    - A position cycle or a chain longer than ``max_depth`` ends the walk
      with no superior, and is logged.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from approval_kernel.domain.hierarchy import DEFAULT_MAX_DEPTH, ActorInfo
from approval_kernel.logging_config import get_logger
from approval_kernel.models.actor import ActorModel, PositionModel

logger = get_logger("services.directory")


class SqlActorDirectory:
    """Directory backed by the kernel's actor tables."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self._session_factory = session_factory
        self._max_depth = max_depth

    def get_actor(self, actor_id: str) -> ActorInfo | None:
        with self._session_factory() as session:
            actor = session.get(ActorModel, actor_id)
            return actor.to_info() if actor is not None else None

    def get_superior(self, actor_id: str) -> ActorInfo | None:
        with self._session_factory() as session:
            actor = session.get(ActorModel, actor_id)
            if actor is None:
                return None

            if actor.reports_to_id is not None:
                superior = session.get(ActorModel, actor.reports_to_id)
                return superior.to_info() if superior is not None else None

            if actor.position_id is None:
                return None
            return self._holder_above(session, actor.position_id)

    def _holder_above(self, session: Session, position_id: str) -> ActorInfo | None:
        """Active holder of the first held position above ``position_id``."""
        visited = {position_id}
        current = session.get(PositionModel, position_id)
        for _ in range(self._max_depth):
            if current is None or current.reports_to_position_id is None:
                return None
            parent_id = current.reports_to_position_id
            if parent_id in visited:
                logger.warning(
                    "position_cycle_detected",
                    extra={"start_position_id": position_id, "cycle_at": parent_id},
                )
                return None
            visited.add(parent_id)

            holder = session.execute(
                select(ActorModel)
                .where(
                    ActorModel.position_id == parent_id,
                    ActorModel.active.is_(True),
                )
                .order_by(ActorModel.id)
                .limit(1)
            ).scalar_one_or_none()
            if holder is not None:
                return holder.to_info()
            current = session.get(PositionModel, parent_id)

        logger.warning(
            "position_depth_exceeded",
            extra={"start_position_id": position_id, "max_depth": self._max_depth},
        )
        return None
