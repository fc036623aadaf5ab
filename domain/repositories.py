from __future__ import annotations

from typing import Optional, Protocol, Tuple

from .models import Country, Number, PolicyField


class CountryRepository(Protocol):
    """
    Abstraction over country persistence.

    Implementations are responsible for:
    - Mapping between stored documents and the `Country` domain model.
    - Keeping exactly one country per `user_id`.
    - Hiding any driver details from the application layer.
    """

    async def find_by_user_id(self, user_id: str) -> Optional[Country]:
        """Return the country owned by `user_id`, or None if not found."""

        ...

    async def create_default(self, user_id: str, username: str) -> Country:
        """
        Persist a new country with default values.

        If a country already exists for `user_id`, that country is returned
        unchanged instead of creating a second one.
        """

        ...

    async def get_or_create(self, user_id: str, username: str) -> Tuple[Country, bool]:
        """
        Atomically return the existing country for `user_id`, creating one
        with default values if there is none.

        The flag is True when this call created the country.
        """

        ...

    async def update_field(
        self,
        user_id: str,
        field: PolicyField,
        value: Number,
    ) -> Optional[Country]:
        """
        Set a single policy field and return the refreshed country.

        Returns None when `user_id` has no country.
        """

        ...

    async def ping(self) -> None:
        """Round-trip to the backing store; raises if it is unreachable."""

        ...

    async def ensure_indexes(self) -> None:
        """Create the unique `user_id` index if it does not exist yet."""

        ...

    async def close(self) -> None:
        ...
