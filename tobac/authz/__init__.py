"""Team ownership authorization: the decision engine and its reason codes."""

from tobac.authz.engine import evaluate, has_service_user_access, render_service_user
from tobac.authz.reasons import ALLOW_CODES, DENY_CODES, ReasonCode

__all__ = ["evaluate", "has_service_user_access", "render_service_user", "ALLOW_CODES", "DENY_CODES", "ReasonCode"]
