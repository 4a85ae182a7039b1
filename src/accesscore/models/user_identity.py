"""
UserIdentity model - one external identity-provider account linked to a User.

(provider, provider_user_id) is globally unique: no two users may claim the
same external identity. That constraint is the sole integrity guard for user
resolution, so it lives here in the schema and not only in application code.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Index, UniqueConstraint, false
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from accesscore.db.database import Base
from accesscore.models.base_model import uuid_pk, uuid_fk, timestamp_created


class UserIdentity(Base):
    __tablename__ = "user_identities"

    id = uuid_pk()
    user_id = uuid_fk("users")

    # 'kinde', 'firebase', 'google', ...
    provider = Column(String, nullable=False)
    provider_user_id = Column(String, nullable=False)

    # Email reported by the provider at link time
    email = Column(String, nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False, server_default=false())

    linked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = timestamp_created()

    user = relationship("User", back_populates="identities")

    __table_args__ = (
        UniqueConstraint("provider", "provider_user_id", name="uq_identity_provider"),
        Index("idx_user_identities_provider", "provider", "provider_user_id"),
    )

    def __repr__(self):
        return f"<UserIdentity(provider={self.provider}, subject={self.provider_user_id}, user={self.user_id})>"
