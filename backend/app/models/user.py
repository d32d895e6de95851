"""User model — coaches, their clients, and platform admins."""

import uuid

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

ROLE_COACH = "coach"
ROLE_CLIENT = "client"
ROLE_ADMIN = "admin"
VALID_ROLES: frozenset[str] = frozenset({ROLE_COACH, ROLE_CLIENT, ROLE_ADMIN})


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Platform account.

    A client points at exactly one coach through ``coach_id``. Coaches and
    admins never carry a ``coach_id``; the client-creation service is the
    only writer of that column.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('coach', 'client', 'admin')", name="ck_users_role"),
        CheckConstraint("coach_id IS NULL OR role = 'client'", name="ck_users_coach_only_for_clients"),
    )

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    role: Mapped[str] = mapped_column(String(50), default=ROLE_COACH, nullable=False)

    # Client -> coach link; NULL when no coach is assigned
    coach_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Relationships
    subscription: Mapped["Subscription | None"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Subscription", back_populates="user", uselist=False, lazy="selectin"
    )
    coach: Mapped["User | None"] = relationship(
        "User", remote_side="User.id", back_populates="clients", lazy="raise"
    )
    clients: Mapped[list["User"]] = relationship("User", back_populates="coach", lazy="raise")

    @property
    def is_coach(self) -> bool:
        return self.role == ROLE_COACH

    @property
    def is_client(self) -> bool:
        return self.role == ROLE_CLIENT

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role!r}>"
