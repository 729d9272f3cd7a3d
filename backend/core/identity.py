from dataclasses import dataclass

ROLE_ADMIN = "admin"
ROLE_CANDIDATE = "candidate"
ROLE_VOTER = "voter"
ROLES = (ROLE_ADMIN, ROLE_CANDIDATE, ROLE_VOTER)


@dataclass(frozen=True)
class Identity:
    """An authenticated caller, as vouched for by the identity provider."""
    user_id: str
    email: str = ""
    role: str = ROLE_VOTER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
