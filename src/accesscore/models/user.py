"""
User model - the internal identity record.

PostgreSQL is the system of record for users. A user is created the first
time any identity provider authenticates them, and can have many linked
identities (see UserIdentity).
"""
from sqlalchemy import Column, String, Boolean, Index, false
from sqlalchemy.orm import relationship

from accesscore.db.database import Base
from accesscore.models.base_model import uuid_pk
from accesscore.models.mixins import SoftDeleteMixin, TimestampMixin


class User(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "users"

    id = uuid_pk()

    primary_email = Column(String, nullable=False)
    name = Column(String, nullable=True)
    picture_url = Column(String, nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False, server_default=false())

    identities = relationship(
        "UserIdentity",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="UserIdentity.linked_at",
    )
    memberships = relationship(
        "Membership",
        back_populates="user",
        foreign_keys="Membership.user_id",
    )

    __table_args__ = (
        Index("idx_users_email", "primary_email"),
    )

    @property
    def primary_identity(self):
        for identity in self.identities:
            if identity.is_primary:
                return identity
        return None

    def __repr__(self):
        return f"<User(id={self.id}, email={self.primary_email})>"
