import pytest
from pydantic import ValidationError

from keytar.exceptions import ClientNotFound, UserNotFound
from keytar.realm import RealmConfig


def test_get_user(realm):
    user = realm.get_user("alice")
    assert user.email == "alice@example.com"
    assert user.first_name == "Alice"
    assert user.realm_roles == ("admin", "user")


def test_disabled_user_is_never_returned(realm):
    assert realm.get_user("bob") is None
    with pytest.raises(UserNotFound):
        realm.require_user("bob")


def test_enabled_defaults_to_true(realm):
    assert realm.get_user("carol").is_enabled


def test_enabled_users_keeps_order(realm):
    assert [u.username for u in realm.enabled_users()] == ["alice", "carol"]


def test_unknown_client(realm):
    assert realm.get_client("nope") is None
    with pytest.raises(ClientNotFound):
        realm.require_client("nope")


def test_empty_realm():
    realm = RealmConfig.model_validate({})
    assert realm.clients == ()
    assert realm.users == ()
    assert realm.get_user("alice") is None
    assert realm.group_claim_value() is None
    assert realm.token_lifespan(42) == 42


def test_null_collections_load_as_empty():
    realm = RealmConfig.model_validate({
        "clients": None,
        "users": [{"username": "x", "attributes": None, "realmRoles": None}],
        "clientScopes": [{"name": "profile", "protocolMappers": None}],
    })
    assert realm.clients == ()
    assert realm.users[0].attributes == {}
    assert realm.group_claim_value() is None


def test_realm_is_immutable(realm):
    with pytest.raises(ValidationError):
        realm.realm = "other"


def test_token_lifespan(realm):
    assert realm.token_lifespan(86400) == 600


def test_group_claim_value(group_realm):
    assert group_realm.group_claim_value() == "Engineering"


def test_group_mapper_without_value():
    realm = RealmConfig.model_validate({
        "clientScopes": [{"name": "profile", "protocolMappers": [{"name": "group", "config": {"claim.value": ""}}]}],
    })
    assert realm.group_claim_value() is None


def test_group_mapper_outside_profile_scope_is_ignored():
    realm = RealmConfig.model_validate({
        "clientScopes": [{"name": "email", "protocolMappers": [{"name": "group", "config": {"claim.value": "x"}}]}],
    })
    assert realm.group_claim_value() is None


def test_list_attribute_reads_first_value():
    realm = RealmConfig.model_validate({"users": [{"username": "x", "attributes": {"unique_name": ["a@b", "c@d"]}}]})
    assert realm.users[0].attribute("unique_name") == "a@b"


def test_records_without_key_are_dropped():
    realm = RealmConfig.model_validate({
        "users": [{"email": "nameless@example.com"}, {"username": None}, {"username": "alice"}],
        "clientScopes": [{"protocol": "openid-connect"}, {"name": "profile", "protocolMappers": [{"config": {}}]}],
    })
    assert [u.username for u in realm.users] == ["alice"]
    assert realm.get_client_scope("profile").protocol_mappers == ()


def test_non_string_claim_values_are_stringified():
    realm = RealmConfig.model_validate({
        "users": [{"username": "x", "attributes": {"unique_name": 42}}],
        "clientScopes": [{"name": "profile", "protocolMappers": [{"name": "group", "config": {"claim.value": 7}}]}],
    })
    assert realm.users[0].attribute("unique_name") == "42"
    assert realm.group_claim_value() == "7"
