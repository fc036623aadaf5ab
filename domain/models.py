from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

Number = Union[int, float]


class PolicyField(str, Enum):
    """The nine numeric fields of a country that players may change."""

    FUNDING = "funding"
    COMPANIES = "companies"
    SPEECH_EVENTS = "speechEvents"
    ELECTIONS = "elections"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    POLICE_CRIME = "policeCrime"
    ENVIRONMENT = "environment"
    INFRASTRUCTURE = "infrastructure"


# Values a freshly created country starts with.
DEFAULT_POLICY_VALUES: Dict[PolicyField, Number] = {
    PolicyField.FUNDING: 1000,
    PolicyField.COMPANIES: 5,
    PolicyField.SPEECH_EVENTS: 0,
    PolicyField.ELECTIONS: 0,
    PolicyField.HEALTHCARE: 50,
    PolicyField.EDUCATION: 50,
    PolicyField.POLICE_CRIME: 50,
    PolicyField.ENVIRONMENT: 50,
    PolicyField.INFRASTRUCTURE: 50,
}


@dataclass
class Country:
    """
    Domain representation of the country owned by one Discord user.

    `user_id` is the external provider's user id and never changes once the
    country is created. `username` is a snapshot taken at first login.
    """

    user_id: str
    username: str
    funding: Number = 1000
    companies: Number = 5
    speech_events: Number = 0
    elections: Number = 0
    healthcare: Number = 50
    education: Number = 50
    police_crime: Number = 50
    environment: Number = 50
    infrastructure: Number = 50
    id: Optional[str] = field(default=None, compare=False)

    @classmethod
    def with_defaults(cls, user_id: str, username: str) -> Country:
        values = {_ATTRIBUTES[f]: v for f, v in DEFAULT_POLICY_VALUES.items()}
        return cls(user_id=str(user_id), username=username, **values)

    def get(self, policy: PolicyField) -> Number:
        return getattr(self, _ATTRIBUTES[policy])

    def set(self, policy: PolicyField, value: Number) -> None:
        setattr(self, _ATTRIBUTES[policy], value)

    def to_document(self) -> Dict[str, Any]:
        """Stored/JSON shape: camelCase keys, `_id` only when known."""

        doc: Dict[str, Any] = {}
        if self.id is not None:
            doc["_id"] = self.id
        doc["userId"] = self.user_id
        doc["username"] = self.username
        for policy in PolicyField:
            doc[policy.value] = self.get(policy)
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> Country:
        values = {
            _ATTRIBUTES[policy]: doc.get(policy.value, DEFAULT_POLICY_VALUES[policy])
            for policy in PolicyField
        }
        raw_id = doc.get("_id")
        return cls(
            user_id=str(doc["userId"]),
            username=doc.get("username") or "",
            id=str(raw_id) if raw_id is not None else None,
            **values,
        )


_ATTRIBUTES: Dict[PolicyField, str] = {
    PolicyField.FUNDING: "funding",
    PolicyField.COMPANIES: "companies",
    PolicyField.SPEECH_EVENTS: "speech_events",
    PolicyField.ELECTIONS: "elections",
    PolicyField.HEALTHCARE: "healthcare",
    PolicyField.EDUCATION: "education",
    PolicyField.POLICE_CRIME: "police_crime",
    PolicyField.ENVIRONMENT: "environment",
    PolicyField.INFRASTRUCTURE: "infrastructure",
}


@dataclass
class UserContext:
    """
    The caller behind a request, as rebuilt from the session.

    `country` is None when the session still names a user whose country
    can no longer be found; callers only know `user_id` in that case.
    """

    user_id: str
    country: Optional[Country] = None

    @property
    def username(self) -> Optional[str]:
        if self.country is None:
            return None
        return self.country.username
