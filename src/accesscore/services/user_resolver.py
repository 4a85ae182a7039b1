"""
User resolution from identity-provider claims.

Maps a token to exactly one internal user, handling:
- Direct sign-in through the primary provider (Kinde)
- Legacy passthrough identities (Firebase uid carried in the token)
- Account linking (many identity providers per user)

The (provider, provider_user_id) unique constraint is the only integrity
guard. Lookups always run before inserts, so replaying a resolution is safe.
"""
from typing import List, Optional
from uuid import UUID
import logging

from opentelemetry import trace
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from accesscore.auth.claims import TokenClaims, PRIMARY_PROVIDER, LEGACY_PROVIDER
from accesscore.auth.errors import IdentityConflict, NotFound
from accesscore.metrics import (
    identities_linked_total,
    identity_conflicts_total,
    users_created_total,
)
from accesscore.models.membership import Membership
from accesscore.models.user import User
from accesscore.models.user_identity import UserIdentity
from accesscore.repositories.membership_repository import MembershipRepository
from accesscore.repositories.user_repository import UserRepository
from accesscore.services.audit_service import AuditService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class UserResolver:
    """Finds or creates the internal user behind a set of token claims."""

    def __init__(
        self,
        db: Session,
        primary_provider: str = PRIMARY_PROVIDER,
        legacy_provider: str = LEGACY_PROVIDER,
    ):
        self.db = db
        self.primary_provider = primary_provider
        self.legacy_provider = legacy_provider

    def resolve_user(self, claims: TokenClaims) -> User:
        """
        Resolve claims to a user. Each step returns as soon as it matches:

        1. Identity for the primary provider's subject exists -> its user.
        2. Token carries a legacy uid linked to a user -> link the primary
           subject to that user (non-primary; the legacy identity predates it
           and keeps primary status) and return it.
        3. Otherwise create the user with a primary identity, plus a
           non-primary legacy identity when a legacy uid is present.

        Raises:
            IdentityConflict: retryable, when a concurrent first login for the
                same identity won the race.
        """
        with tracer.start_as_current_span("resolver.resolve_user") as span:
            span.set_attribute("idp.provider", self.primary_provider)

            identity = UserRepository.find_identity(self.db, self.primary_provider, claims.sub)
            if identity:
                user_id = identity.user_id
                span.set_attribute("resolver.branch", "primary")
                span.set_attribute("user.id", str(user_id))
                self._touch_last_login(identity.id)
                return self._load_user(user_id)

            if claims.legacy_uid:
                legacy = UserRepository.find_identity(self.db, self.legacy_provider, claims.legacy_uid)
                if legacy:
                    user_id, legacy_identity_id = legacy.user_id, legacy.id
                    span.set_attribute("resolver.branch", "legacy_link")
                    span.set_attribute("user.id", str(user_id))

                    self._link_new_identity(
                        user_id=user_id,
                        provider=self.primary_provider,
                        provider_user_id=claims.sub,
                        email=claims.email,
                    )
                    logger.info(
                        f"Linked {self.primary_provider} identity to legacy user {user_id} "
                        f"via {self.legacy_provider} uid"
                    )
                    self._touch_last_login(legacy_identity_id)
                    return self._load_user(user_id)

            span.set_attribute("resolver.branch", "create")
            user = self._create_user(claims)
            span.set_attribute("user.id", str(user.id))
            return user

    def link_identity(
        self,
        user_id: UUID,
        provider: str,
        provider_user_id: str,
        email: Optional[str] = None,
    ) -> UserIdentity:
        """
        Link an additional identity-provider account to an existing user.

        Idempotent when the identity already belongs to this user.

        Raises:
            IdentityConflict: the identity belongs to a different user.
        """
        with tracer.start_as_current_span("resolver.link_identity") as span:
            span.set_attribute("idp.provider", provider)
            span.set_attribute("user.id", str(user_id))

            existing = UserRepository.find_identity(self.db, provider, provider_user_id)
            if existing:
                if existing.user_id == user_id:
                    return existing
                identity_conflicts_total.labels(retryable="false").inc()
                logger.warning(
                    f"Refusing to link {provider} identity to user {user_id}: "
                    f"already linked to user {existing.user_id}"
                )
                raise IdentityConflict(provider, provider_user_id, existing_user_id=existing.user_id)

            return self._link_new_identity(
                user_id=user_id,
                provider=provider,
                provider_user_id=provider_user_id,
                email=email,
            )

    def get_user_memberships(self, user_id: UUID) -> List[Membership]:
        """
        All active memberships for a user, earliest-joined org first.
        """
        with tracer.start_as_current_span("resolver.get_user_memberships") as span:
            span.set_attribute("user.id", str(user_id))
            memberships = MembershipRepository.list_for_user(self.db, user_id)
            span.set_attribute("memberships.count", len(memberships))
            return memberships

    def validate_org_access(self, user_id: UUID, org_ref_id: UUID) -> Optional[Membership]:
        """
        The user's membership in an org, or None.

        A missing membership is not an error here; the caller decides whether
        absence is fatal.
        """
        with tracer.start_as_current_span("resolver.validate_org_access") as span:
            span.set_attribute("user.id", str(user_id))
            span.set_attribute("org.id", str(org_ref_id))
            membership = MembershipRepository.get_active(self.db, user_id, org_ref_id)
            span.set_attribute("org.member", membership is not None)
            return membership

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _create_user(self, claims: TokenClaims) -> User:
        try:
            # The identity provider has already verified the email
            user = UserRepository.add_user(
                self.db,
                primary_email=claims.email,
                name=claims.display_name,
                picture_url=claims.picture,
                email_verified=True,
            )
            UserRepository.add_identity(
                self.db,
                user_id=user.id,
                provider=self.primary_provider,
                provider_user_id=claims.sub,
                email=claims.email,
                is_primary=True,
            )
            if claims.legacy_uid:
                UserRepository.add_identity(
                    self.db,
                    user_id=user.id,
                    provider=self.legacy_provider,
                    provider_user_id=claims.legacy_uid,
                    email=claims.legacy_email or claims.email,
                    is_primary=False,
                )
            AuditService(self.db).record(
                "user.created",
                actor_id=user.id,
                resource_type="user",
                resource_id=user.id,
                details={"provider": self.primary_provider},
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            identity_conflicts_total.labels(retryable="true").inc()
            logger.warning(
                f"Concurrent first login for {self.primary_provider} subject; "
                "user creation rolled back"
            )
            raise IdentityConflict(self.primary_provider, claims.sub, retryable=True)

        users_created_total.inc()
        logger.info(f"Created user {user.id} from {self.primary_provider} sign-in")
        return self._load_user(user.id)

    def _link_new_identity(
        self,
        *,
        user_id: UUID,
        provider: str,
        provider_user_id: str,
        email: Optional[str],
    ) -> UserIdentity:
        try:
            identity = UserRepository.add_identity(
                self.db,
                user_id=user_id,
                provider=provider,
                provider_user_id=provider_user_id,
                email=email,
                is_primary=False,
            )
            AuditService(self.db).record(
                "identity.linked",
                actor_id=user_id,
                resource_type="user_identity",
                resource_id=identity.id,
                details={"provider": provider},
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            identity_conflicts_total.labels(retryable="true").inc()
            logger.warning(f"Concurrent link of {provider} identity to user {user_id}; rolled back")
            raise IdentityConflict(provider, provider_user_id, retryable=True)

        identities_linked_total.labels(provider=provider).inc()
        return identity

    def _touch_last_login(self, identity_id: UUID) -> None:
        # Bookkeeping only: never block a successful sign-in on it
        try:
            UserRepository.touch_last_login(self.db, identity_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to update last_login_at for identity {identity_id}: {e}")

    def _load_user(self, user_id: UUID) -> User:
        user = UserRepository.get_by_id(self.db, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user
