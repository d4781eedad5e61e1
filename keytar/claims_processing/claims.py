from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from keytar.realm import RealmConfig, User


class UserClaims(BaseModel):
    """Identity claims shared by the access and the ID token of a user."""

    model_config = ConfigDict(frozen=True)

    sub: str
    email: Optional[str] = None
    # emailVerified in the realm is ignored; mock users are always verified.
    email_verified: bool = True
    name: Optional[str] = None
    preferred_username: str
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    unique_name: Optional[str] = None
    group: Optional[str] = None

    def as_claims(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def display_name(user: User) -> Optional[str]:
    parts = [p for p in (user.first_name, user.last_name) if p]
    return " ".join(parts) or None


def build_user_claims(user: User, realm: RealmConfig) -> UserClaims:
    return UserClaims(
        sub=user.username,
        email=user.email,
        email_verified=True,
        name=display_name(user),
        preferred_username=user.username,
        given_name=user.first_name,
        family_name=user.last_name,
        unique_name=user.attribute("unique_name") or user.email,
        group=realm.group_claim_value(),
    )
