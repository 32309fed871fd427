"""
Module: approval_kernel.models.actor
Responsibility: ORM persistence for the organisation directory read by the
    workflow (actors and the positions they hold).
Architecture position: Kernel > Models.  The kernel only reads these
    tables; maintaining them belongs to the surrounding HR system.
"""

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from approval_kernel.db.base import ID_LENGTH, Base
from approval_kernel.domain.hierarchy import ActorInfo
from approval_kernel.domain.workflow import Role


class PositionModel(Base):
    """A position in the org chart; positions report to positions."""

    __tablename__ = "positions"

    title: Mapped[str] = mapped_column(String(200), nullable=False)

    reports_to_position_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("positions.id"),
        nullable=True,
    )


class ActorModel(Base):
    """A person who can request or approve."""

    __tablename__ = "actors"
    __table_args__ = (
        Index("idx_actor_reports_to", "reports_to_id"),
        Index("idx_actor_position", "position_id"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    role: Mapped[str] = mapped_column(
        String(32), nullable=False, default=Role.REQUESTER.value
    )

    reports_to_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("actors.id"),
        nullable=True,
    )

    position_id: Mapped[str | None] = mapped_column(
        String(ID_LENGTH),
        ForeignKey("positions.id"),
        nullable=True,
    )

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def to_info(self) -> ActorInfo:
        return ActorInfo(
            id=self.id,
            role=Role.coerce(self.role),
            name=self.name,
            reports_to_id=self.reports_to_id,
            active=self.active,
        )
