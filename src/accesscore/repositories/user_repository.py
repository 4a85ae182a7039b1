# src/accesscore/repositories/user_repository.py

"""
Identity Store data access layer: users and their linked identities.

Writes use flush instead of commit so the resolver can create a user together
with its identities in one transaction.
"""

from __future__ import annotations
from datetime import datetime, timezone
from uuid import UUID
from sqlalchemy.orm import Session, selectinload
from accesscore.models.user import User
from accesscore.models.user_identity import UserIdentity


class UserRepository:
    """
    Data access methods for User and UserIdentity models.
    """

    @staticmethod
    def get_by_id(db: Session, user_id: UUID) -> User | None:
        """
        Get a user by ID with identities loaded.

        Soft-deleted users are returned too; callers decide what to do with them.
        """
        return (
            db.query(User)
            .options(selectinload(User.identities))
            .filter(User.id == user_id)
            .first()
        )

    @staticmethod
    def find_identity(db: Session, provider: str, provider_user_id: str) -> UserIdentity | None:
        """
        Look up an identity by its globally unique (provider, subject) pair.
        """
        return (
            db.query(UserIdentity)
            .filter(
                UserIdentity.provider == provider,
                UserIdentity.provider_user_id == provider_user_id,
            )
            .first()
        )

    @staticmethod
    def list_identities(db: Session, user_id: UUID) -> list[UserIdentity]:
        return (
            db.query(UserIdentity)
            .filter(UserIdentity.user_id == user_id)
            .order_by(UserIdentity.linked_at)
            .all()
        )

    @staticmethod
    def add_user(
        db: Session,
        *,
        primary_email: str,
        name: str | None = None,
        picture_url: str | None = None,
        email_verified: bool = False,
    ) -> User:
        """
        Stage a new user and flush it to obtain an ID. Does not commit.
        """
        user = User(
            primary_email=primary_email,
            name=name,
            picture_url=picture_url,
            email_verified=email_verified,
        )
        db.add(user)
        db.flush()
        return user

    @staticmethod
    def add_identity(
        db: Session,
        *,
        user_id: UUID,
        provider: str,
        provider_user_id: str,
        email: str | None = None,
        is_primary: bool = False,
    ) -> UserIdentity:
        """
        Stage a new identity link and flush it. Does not commit.

        Raises sqlalchemy.exc.IntegrityError if (provider, provider_user_id)
        is already linked.
        """
        now = datetime.now(timezone.utc)
        identity = UserIdentity(
            user_id=user_id,
            provider=provider,
            provider_user_id=provider_user_id,
            email=email,
            is_primary=is_primary,
            linked_at=now,
            last_login_at=now,
        )
        db.add(identity)
        db.flush()
        return identity

    @staticmethod
    def touch_last_login(db: Session, identity_id: UUID) -> None:
        """
        Stamp last_login_at on an identity and commit.
        """
        db.query(UserIdentity).filter(UserIdentity.id == identity_id).update(
            {UserIdentity.last_login_at: datetime.now(timezone.utc)},
            synchronize_session=False,
        )
        db.commit()
