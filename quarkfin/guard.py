"""Route access rules and the single function that enforces them."""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass
from enum import Enum

LOGIN_PATH = "/login"
HOME_PATH = "/platform"
ONBOARDING_PATH = "/onboarding"


class Access(str, Enum):
    PUBLIC = "public"                # anyone
    GUEST_ONLY = "guest_only"        # signed-out users; signed-in users go home
    AUTHENTICATED = "authenticated"  # signed-in users; others go to login
    ENTRY = "entry"                  # never rendered; always redirected


@dataclass(frozen=True)
class RouteRule:
    pattern: str
    access: Access

    def matches(self, path: str) -> bool:
        return fnmatch.fnmatchcase(path, self.pattern)


# First match wins.
ROUTE_RULES: tuple[RouteRule, ...] = (
    RouteRule("/", Access.ENTRY),
    RouteRule("/login", Access.GUEST_ONLY),
    RouteRule("/signup", Access.GUEST_ONLY),
    RouteRule("/auth/*", Access.PUBLIC),
    RouteRule("/pricing", Access.PUBLIC),
    RouteRule("/privacy", Access.PUBLIC),
    RouteRule("/terms", Access.PUBLIC),
    RouteRule("/platform", Access.AUTHENTICATED),
    RouteRule("/platform/*", Access.AUTHENTICATED),
    RouteRule("/dashboard*", Access.AUTHENTICATED),
    RouteRule("/assessment-report*", Access.AUTHENTICATED),
)

DEFAULT_ACCESS = Access.AUTHENTICATED


@dataclass(frozen=True)
class AuthState:
    loading: bool = False
    authenticated: bool = False
    onboarding_completed: bool = False


class Outcome(str, Enum):
    ALLOW = "allow"
    WAIT = "wait"
    REDIRECT = "redirect"
    ONBOARDING = "onboarding"


@dataclass(frozen=True)
class GuardDecision:
    outcome: Outcome
    target: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOW


def access_for(path: str) -> Access:
    for rule in ROUTE_RULES:
        if rule.matches(path):
            return rule.access
    return DEFAULT_ACCESS


def resolve_route(path: str, state: AuthState, require_onboarding: bool = False) -> GuardDecision:
    """Decide what to do when ``path`` is requested in ``state``."""
    if state.loading:
        return GuardDecision(Outcome.WAIT)

    access = access_for(path)

    if access is Access.ENTRY:
        return GuardDecision(Outcome.REDIRECT, HOME_PATH if state.authenticated else LOGIN_PATH)

    if access is Access.PUBLIC:
        return GuardDecision(Outcome.ALLOW)

    if access is Access.GUEST_ONLY:
        if state.authenticated:
            return GuardDecision(Outcome.REDIRECT, HOME_PATH)
        return GuardDecision(Outcome.ALLOW)

    if not state.authenticated:
        return GuardDecision(Outcome.REDIRECT, LOGIN_PATH)
    if require_onboarding and not state.onboarding_completed:
        return GuardDecision(Outcome.ONBOARDING, ONBOARDING_PATH)
    return GuardDecision(Outcome.ALLOW)
