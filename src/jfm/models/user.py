"""User models."""

from collections.abc import Iterable, Iterator
from typing import Optional

from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    """A server account."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str

    @property
    def key(self) -> str:
        """Case-insensitive identity key."""
        return self.name.casefold()


class UserDirectory:
    """Users of one server, looked up by case-insensitive name."""

    def __init__(self, users: Iterable[User] = ()):
        self._users: dict[str, User] = {}
        for user in users:
            # First account wins when two names differ only by case
            self._users.setdefault(user.key, user)

    def get(self, name: str) -> Optional[User]:
        return self._users.get(name.casefold())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.casefold() in self._users

    def __iter__(self) -> Iterator[User]:
        return iter(self._users.values())

    def __len__(self) -> int:
        return len(self._users)
