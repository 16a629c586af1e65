import enum
from dataclasses import dataclass


class Role(str, enum.Enum):
    USER = "user"
    AUTHOR = "author"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    """Who is making the request. Anonymous requests carry no Identity at all."""
    id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @classmethod
    def from_user(cls, user) -> "Identity":
        return cls(id=user.id, role=Role(user.role))
