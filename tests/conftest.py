import pytest
from fastapi.testclient import TestClient

from keytar.app import create_app
from keytar.config import Settings
from keytar.keys import KeyPair
from keytar.realm import RealmConfig
from keytar.tokens import TokenIssuer, TokenVerifier

ISSUER = "http://localhost:8020"

REALM = {
    "realm": "test",
    "accessTokenLifespan": 300,
    "accessTokenLifespanForImplicitFlow": 600,
    "clients": [
        {"clientId": "app1", "redirectUris": ["http://localhost:*"], "implicitFlowEnabled": True},
        {"clientId": "strict", "redirectUris": ["https://app.example.com/callback"]},
    ],
    "users": [
        {
            "username": "alice",
            "email": "alice@example.com",
            "firstName": "Alice",
            "lastName": "Example",
            "enabled": True,
            "attributes": {"unique_name": "alice@int.example.com"},
            "realmRoles": ["admin", "user"],
        },
        {
            "username": "bob",
            "email": "bob@example.com",
            "firstName": "Bob",
            "lastName": "Example",
            "enabled": False,
        },
        {"username": "carol", "email": "carol@example.com", "firstName": "Carol"},
    ],
    "clientScopes": [],
}

GROUP_SCOPES = [
    {
        "name": "profile",
        "protocol": "openid-connect",
        "protocolMappers": [
            {
                "name": "group",
                "protocol": "openid-connect",
                "protocolMapper": "oidc-hardcoded-claim-mapper",
                "config": {"claim.name": "group", "claim.value": "Engineering"},
            }
        ],
    }
]


@pytest.fixture(scope="session")
def key_pair():
    return KeyPair.generate()


@pytest.fixture
def realm():
    return RealmConfig.model_validate(REALM)


@pytest.fixture
def group_realm():
    return RealmConfig.model_validate({**REALM, "clientScopes": GROUP_SCOPES})


@pytest.fixture
def issuer(realm, key_pair):
    return TokenIssuer(realm, key_pair, ISSUER, 86400)


@pytest.fixture
def verifier(key_pair):
    return TokenVerifier(key_pair)


@pytest.fixture
def settings():
    return Settings(issuer=ISSUER)


@pytest.fixture
def client(settings, realm, key_pair):
    return TestClient(create_app(settings, realm, key_pair))
