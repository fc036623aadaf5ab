from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, MutableMapping, Optional, Protocol

from domain.errors import InvalidAmount, UnknownPolicyField
from domain.models import Country, Number, PolicyField, UserContext
from domain.repositories import CountryRepository

logger = logging.getLogger(__name__)

# The only thing a session ever carries about its user.
SESSION_USER_KEY = "user_id"

# Largest whole number a double holds exactly.
MAX_EXACT_INT = 2**53


@dataclass
class ExternalProfile:
    """
    The caller as described by an external identity provider.

    The application layer never depends on concrete SDK types; it only sees
    this small profile object.
    """

    provider: str
    provider_user_id: str
    username: str


class IdentityProvider(Protocol):
    """The two network steps of an OAuth callback."""

    async def exchange_grant(self, grant: Any) -> Any:
        """Trade the authorization grant for an access token."""

        ...

    async def fetch_profile(self, token: Any) -> ExternalProfile:
        ...


class LoginFailureCause(str, Enum):
    GRANT_EXCHANGE_FAILED = "grant_exchange_failed"
    PROFILE_FETCH_FAILED = "profile_fetch_failed"
    STORE_ERROR = "store_error"


@dataclass
class LoginResult:
    """Outcome of an OAuth callback."""

    success: bool
    user_id: Optional[str] = None
    country: Optional[Country] = None
    cause: Optional[LoginFailureCause] = None
    created: bool = False


def _login_failed(cause: LoginFailureCause) -> LoginResult:
    logger.exception("Login failed: %s", cause.value)
    return LoginResult(success=False, cause=cause)


async def complete_login(
    grant: Any,
    identity_provider: IdentityProvider,
    country_repo: CountryRepository,
) -> LoginResult:
    """
    Finish an OAuth login:
    - Exchange the grant and fetch the caller's profile.
    - Return the caller's country, creating it with defaults on first login.

    Every failure is reported through `LoginResult.cause`; nothing is raised.
    """

    try:
        token = await identity_provider.exchange_grant(grant)
    except Exception:
        return _login_failed(LoginFailureCause.GRANT_EXCHANGE_FAILED)

    try:
        profile = await identity_provider.fetch_profile(token)
    except Exception:
        return _login_failed(LoginFailureCause.PROFILE_FETCH_FAILED)

    try:
        country, created = await country_repo.get_or_create(
            profile.provider_user_id,
            profile.username,
        )
    except Exception:
        return _login_failed(LoginFailureCause.STORE_ERROR)

    logger.info(
        "User %s logged in via %s (country created: %s)",
        country.user_id,
        profile.provider,
        created,
    )
    return LoginResult(
        success=True,
        user_id=country.user_id,
        country=country,
        created=created,
    )


def start_session(session: MutableMapping[str, Any], user_id: str) -> None:
    session.clear()
    session[SESSION_USER_KEY] = str(user_id)


def end_session(session: MutableMapping[str, Any]) -> None:
    session.clear()


async def resolve_session(
    session: Mapping[str, Any],
    country_repo: CountryRepository,
) -> Optional[UserContext]:
    """
    Rebuild the caller from the session by re-reading their country.

    Returns None when the session carries no user. When the user is known
    but their country cannot be found, the context has `country=None`.
    """

    user_id = session.get(SESSION_USER_KEY)
    if not user_id:
        return None

    country = await country_repo.find_by_user_id(user_id)
    return UserContext(user_id=str(user_id), country=country)


def parse_policy_field(field_name: str) -> PolicyField:
    try:
        return PolicyField(field_name)
    except ValueError:
        raise UnknownPolicyField(field_name) from None


def parse_amount(raw_amount: str) -> Number:
    """
    Read an amount from a URL segment.

    Whole numbers up to 2**53 come back as `int` ("2000" -> 2000,
    "2e3" -> 2000); anything else that is finite comes back as `float`, so
    huge amounts are stored as doubles rather than overflowing int64.
    """

    try:
        value = float(raw_amount.strip())
    except (AttributeError, ValueError):
        raise InvalidAmount(raw_amount) from None

    if not math.isfinite(value):
        raise InvalidAmount(raw_amount)
    if value.is_integer() and abs(value) <= MAX_EXACT_INT:
        return int(value)
    return value


async def update_country_field(
    user: UserContext,
    field_name: str,
    raw_amount: str,
    country_repo: CountryRepository,
) -> Optional[Country]:
    """
    Set one policy field of the caller's country.

    Raises `UnknownPolicyField` / `InvalidAmount` before anything is written.
    Returns None when the caller has no country.
    """

    try:
        field = parse_policy_field(field_name)
    except UnknownPolicyField:
        logger.warning("User %s tried to update unknown field %r", user.user_id, field_name)
        raise
    amount = parse_amount(raw_amount)

    return await country_repo.update_field(user.user_id, field, amount)


def build_auth_check(user: UserContext) -> Dict[str, Any]:
    """Payload of the session check: who the caller is and their country."""

    return {
        "user": {"id": user.user_id, "username": user.username},
        "country": user.country.to_document() if user.country else None,
    }
