"""
Acting admin identity passed explicitly into every settlement call.
"""

from dataclasses import dataclass

from rental_backend.app.models.enums import UserRole, PRIVILEGED_ROLES, BACK_OFFICE_ROLES


@dataclass(frozen=True)
class ActorContext:
    """Who is performing a booking action, resolved once per request."""
    user_id: int
    username: str
    role: UserRole
    full_name: str = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    @property
    def is_privileged(self) -> bool:
        return self.role in PRIVILEGED_ROLES

    @property
    def is_back_office(self) -> bool:
        return self.role in BACK_OFFICE_ROLES
