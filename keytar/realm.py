import logging
from typing import Annotated, Any, Dict, Optional, Tuple

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from keytar.exceptions import ClientNotFound, UserNotFound

logger = logging.getLogger(__name__)


# =========================
# Realm records
# =========================

class _RealmModel(BaseModel):
    # Realm exports use Keycloak's camelCase keys and carry many fields we never read.
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


# Realm exports sometimes carry explicit nulls for lists and maps.
EmptyIfNone = BeforeValidator(lambda v: () if v is None else v)
EmptyDictIfNone = BeforeValidator(lambda v: {} if v is None else v)


def keyed_by(*keys: str) -> BeforeValidator:
    """Drop records whose lookup key is missing; the rest of the realm still loads."""

    def drop_unkeyed(v: Any) -> Any:
        if v is None:
            return ()
        if not isinstance(v, (list, tuple)):
            return v
        kept = [e for e in v if not isinstance(e, dict) or any(isinstance(e.get(k), str) for k in keys)]
        if len(kept) != len(v):
            logger.warning('Ignoring %d realm entries without "%s"', len(v) - len(kept), keys[0])
        return kept

    return BeforeValidator(drop_unkeyed)


class ProtocolMapper(_RealmModel):
    name: str
    protocol: Optional[str] = None
    protocol_mapper: Optional[str] = Field(None, alias="protocolMapper")
    config: Annotated[Dict[str, Any], EmptyDictIfNone] = Field(default_factory=dict)


class ClientScope(_RealmModel):
    name: str
    protocol: Optional[str] = None
    protocol_mappers: Annotated[Tuple[ProtocolMapper, ...], keyed_by("name")] = Field((), alias="protocolMappers")

    def get_mapper(self, name: str) -> Optional[ProtocolMapper]:
        return next((pm for pm in self.protocol_mappers if pm.name == name), None)


class Client(_RealmModel):
    client_id: str = Field(alias="clientId")
    redirect_uris: Annotated[Tuple[str, ...], EmptyIfNone] = Field((), alias="redirectUris")
    implicit_flow_enabled: Optional[bool] = Field(None, alias="implicitFlowEnabled")
    standard_flow_enabled: Optional[bool] = Field(None, alias="standardFlowEnabled")
    public_client: Optional[bool] = Field(None, alias="publicClient")
    default_client_scopes: Annotated[Tuple[str, ...], EmptyIfNone] = Field((), alias="defaultClientScopes")
    optional_client_scopes: Annotated[Tuple[str, ...], EmptyIfNone] = Field((), alias="optionalClientScopes")


class User(_RealmModel):
    username: str
    email: Optional[str] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email_verified: Optional[bool] = Field(None, alias="emailVerified")
    enabled: Optional[bool] = True
    attributes: Annotated[Dict[str, Any], EmptyDictIfNone] = Field(default_factory=dict)
    realm_roles: Annotated[Tuple[str, ...], EmptyIfNone] = Field((), alias="realmRoles")

    @property
    def is_enabled(self) -> bool:
        # only an explicit false disables a user
        return self.enabled is not False

    def attribute(self, key: str) -> Optional[str]:
        """Single attribute value; Keycloak exports store attributes as lists."""
        value = self.attributes.get(key)
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        return None if value is None else str(value)


# =========================
# Realm
# =========================

class RealmConfig(_RealmModel):
    realm: str = "flow"
    access_token_lifespan: Optional[int] = Field(None, alias="accessTokenLifespan")
    access_token_lifespan_for_implicit_flow: Optional[int] = Field(
        None, alias="accessTokenLifespanForImplicitFlow"
    )
    clients: Annotated[Tuple[Client, ...], keyed_by("clientId", "client_id")] = ()
    users: Annotated[Tuple[User, ...], keyed_by("username")] = ()
    client_scopes: Annotated[Tuple[ClientScope, ...], keyed_by("name")] = Field((), alias="clientScopes")

    def token_lifespan(self, default: int) -> int:
        return self.access_token_lifespan_for_implicit_flow or default

    def enabled_users(self) -> Tuple[User, ...]:
        return tuple(u for u in self.users if u.is_enabled)

    def get_user(self, username: Optional[str]) -> Optional[User]:
        return next((u for u in self.enabled_users() if u.username == username), None)

    def require_user(self, username: Optional[str]) -> User:
        user = self.get_user(username)
        if user is None:
            raise UserNotFound(username or "")
        return user

    def get_client(self, client_id: Optional[str]) -> Optional[Client]:
        return next((c for c in self.clients if c.client_id == client_id), None)

    def require_client(self, client_id: Optional[str]) -> Client:
        client = self.get_client(client_id)
        if client is None:
            raise ClientNotFound(client_id or "")
        return client

    def get_client_scope(self, name: str) -> Optional[ClientScope]:
        return next((cs for cs in self.client_scopes if cs.name == name), None)

    def group_claim_value(self) -> Optional[str]:
        """Literal group claim from the ``group`` mapper of the ``profile`` scope."""
        profile = self.get_client_scope("profile")
        mapper = profile.get_mapper("group") if profile else None
        if mapper is None:
            return None
        value = mapper.config.get("claim.value")
        return str(value) if value else None
