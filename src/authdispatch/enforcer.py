"""PolicyEnforcer: authorization checks on a freshly authenticated session."""

from __future__ import annotations

import logging
from numbers import Real
from typing import TYPE_CHECKING

from authdispatch.constants import Entity
from authdispatch.errors import PolicyViolation
from authdispatch.session import RequestAuthState, Session

if TYPE_CHECKING:
    from authdispatch.policy import RoutePolicy

logger = logging.getLogger(__name__)


class PolicyEnforcer:
    """Applies scope, terms-of-service and entity checks, in that order."""

    def enforce(self, policy: RoutePolicy, auth_state: RequestAuthState) -> None:
        """Mark ``auth_state`` authenticated or raise ``PolicyViolation``."""
        session = auth_state.session
        if session is None:
            raise ValueError("Cannot enforce a policy without a session")

        self.check_scope(policy, session)
        self.check_tos(policy, session)
        self.check_entity(policy, session)

        auth_state.is_authenticated = True
        logger.debug("Authenticated via %s", auth_state.strategy_name or "injected session")

    def check_scope(self, policy: RoutePolicy, session: Session) -> None:
        if policy.scope is None or policy.scope in session.scope:
            return
        logger.warning("Insufficient scope: got %s, need %s", sorted(session.scope), policy.scope)
        raise PolicyViolation(
            "insufficient_scope",
            f"Insufficient scope ('{policy.scope}' expected)",
            details={"got": sorted(session.scope), "need": policy.scope},
        )

    def check_tos(self, policy: RoutePolicy, session: Session) -> None:
        if policy.tos is None:
            return
        received = session.tos
        if isinstance(received, Real) and not isinstance(received, bool) and received >= policy.tos:
            return
        logger.warning("Insufficient TOS: min %s, received %s", policy.tos, received)
        raise PolicyViolation(
            "insufficient_tos",
            "Insufficient TOS accepted",
            details={"min": policy.tos, "received": received},
        )

    def check_entity(self, policy: RoutePolicy, session: Session) -> None:
        if policy.entity is Entity.USER and not session.user:
            logger.warning("User session required")
            raise PolicyViolation("user_session_required", "Application session cannot be used on a user endpoint")
        if policy.entity is Entity.APP and session.user:
            logger.warning("App session required")
            raise PolicyViolation("app_session_required", "User session cannot be used on an application endpoint")
