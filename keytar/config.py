import json
import logging
import os
from typing import Sequence

from pydantic import BaseModel, ValidationError

from keytar.realm import RealmConfig

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8020
DEFAULT_TOKEN_EXPIRY = 86400
DEFAULT_REALM_CONFIG_PATH = "/config/realm-config.json"
KEYCLOAK_IMPORT_PATH = "/opt/keycloak/data/import/realm-config.json"


# =========================
# Settings
# =========================

def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        return int(raw) or default
    except ValueError:
        return default


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings(BaseModel):
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    issuer: str = f"http://localhost:{DEFAULT_PORT}"
    realm_config_path: str = DEFAULT_REALM_CONFIG_PATH
    token_expiry: int = DEFAULT_TOKEN_EXPIRY
    debug: bool = False
    enforce_redirect_uris: bool = False
    default_client_id: str = "flow-auth"

    @classmethod
    def from_env(cls) -> "Settings":
        port = _env_int("PORT", 0) or _env_int("KC_HTTP_PORT", DEFAULT_PORT)
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=port,
            issuer=os.getenv("ISSUER", f"http://localhost:{port}").rstrip("/"),
            realm_config_path=os.getenv("REALM_CONFIG", DEFAULT_REALM_CONFIG_PATH),
            token_expiry=_env_int("TOKEN_EXPIRY", DEFAULT_TOKEN_EXPIRY),
            debug=_env_bool("DEBUG"),
            enforce_redirect_uris=_env_bool("ENFORCE_REDIRECT_URIS"),
            default_client_id=os.getenv("DEFAULT_CLIENT_ID", "flow-auth"),
        )

    def realm_config_paths(self) -> Sequence[str]:
        return [self.realm_config_path, KEYCLOAK_IMPORT_PATH]


# =========================
# Realm loading
# =========================

def default_realm_config(token_expiry: int = DEFAULT_TOKEN_EXPIRY) -> RealmConfig:
    return RealmConfig.model_validate({
        "realm": "flow",
        "accessTokenLifespan": token_expiry,
        "accessTokenLifespanForImplicitFlow": token_expiry,
        "clients": [{
            "clientId": "flow-auth",
            "redirectUris": ["http://localhost:*"],
            "implicitFlowEnabled": True,
            "defaultClientScopes": ["profile", "email"],
            "optionalClientScopes": ["userinfo"],
        }],
        "users": [{
            "username": "test",
            "email": "test@example.com",
            "firstName": "Test",
            "lastName": "User",
            "enabled": True,
            "attributes": {"unique_name": "test@int.example.com"},
        }],
        "clientScopes": [],
    })


def read_realm_config(path: str) -> RealmConfig:
    with open(path, "r", encoding="utf-8") as fd:
        return RealmConfig.model_validate(json.load(fd))


def load_realm_config(paths: Sequence[str], token_expiry: int = DEFAULT_TOKEN_EXPIRY) -> RealmConfig:
    """First candidate that reads and validates wins; the built-in realm otherwise."""
    for i, path in enumerate(paths):
        try:
            realm = read_realm_config(path)
        except (OSError, ValueError, ValidationError) as e:
            if i == len(paths) - 1:
                logger.error("Failed to load realm configuration: %s", e)
            else:
                logger.debug("Realm configuration not usable at %s: %s", path, e)
            continue
        logger.info("Loaded realm configuration from %s", path)
        logger.info("Found %d users", len(realm.users))
        return realm

    logger.info("Using default realm configuration")
    return default_realm_config(token_expiry)
