import logging
import time
import uuid
from typing import Any, Dict, Optional, Sequence

import jwt
from pydantic import BaseModel

from keytar.claims_processing.claims import build_user_claims
from keytar.exceptions import VerificationError
from keytar.keys import SIGNING_ALG, KeyPair
from keytar.realm import RealmConfig, User

logger = logging.getLogger(__name__)

MOCK_MARKER_CLAIM = "MOCK_SSO_DEVELOPMENT"
DEFAULT_TITLE = "Software Engineer"
DEFAULT_GROUP = "Domain Users"


def now() -> int:
    return int(time.time())


def new_id() -> str:
    return str(uuid.uuid4())


class IssuedTokenSet(BaseModel):
    access_token: str
    id_token: str
    token_type: str = "Bearer"
    expires_in: int
    session_state: str


class UserInfo(BaseModel):
    unique_name: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    title: str = DEFAULT_TITLE
    group: str = DEFAULT_GROUP

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "UserInfo":
        return cls(
            unique_name=claims.get("unique_name"),
            name=claims.get("name"),
            email=claims.get("email"),
            title=claims.get("title") or DEFAULT_TITLE,
            group=claims.get("group") or DEFAULT_GROUP,
        )


# =========================
# Issuance
# =========================

class TokenIssuer:
    def __init__(self, realm: RealmConfig, key_pair: KeyPair, issuer: str, default_lifespan: int):
        self.realm = realm
        self.key_pair = key_pair
        self.issuer = issuer
        self.default_lifespan = default_lifespan

    def sign(self, claims: Dict[str, Any]) -> str:
        return jwt.encode(
            claims, self.key_pair.private_pem, algorithm=SIGNING_ALG, headers={"kid": self.key_pair.kid}
        )

    def issue_tokens(
        self,
        user: User,
        client_id: str,
        nonce: Optional[str] = None,
        scopes: Sequence[str] = (),
    ) -> IssuedTokenSet:
        """Mint an access token and an ID token for ``user``.

        ``client_id`` is taken as given; callers resolve the client (if they
        care to) before issuing. Both tokens share one ``session_state`` and
        carry distinct ``jti`` values.
        """
        issued_at = now()
        lifespan = self.realm.token_lifespan(self.default_lifespan)
        session_state = new_id()
        user_claims = build_user_claims(user, self.realm).as_claims()

        common = {
            "exp": issued_at + lifespan,
            "iat": issued_at,
            "auth_time": issued_at,
            "iss": self.issuer,
            "aud": client_id,
            "sub": user.username,
            "azp": client_id,
            "session_state": session_state,
        }

        access_claims = {
            **common,
            "jti": new_id(),
            "typ": "Bearer",
            "acr": "1",
            "scope": " ".join(scopes),
            **user_claims,
            MOCK_MARKER_CLAIM: True,
        }
        id_claims = {
            **common,
            "jti": new_id(),
            "nonce": nonce,
            **user_claims,
            MOCK_MARKER_CLAIM: True,
        }

        logger.debug("Issuing tokens for %s (client %s, session %s)", user.username, client_id, session_state)
        return IssuedTokenSet(
            access_token=self.sign(access_claims),
            id_token=self.sign(id_claims),
            token_type="Bearer",
            expires_in=lifespan,
            session_state=session_state,
        )


# =========================
# Verification
# =========================

class TokenVerifier:
    def __init__(self, key_pair: KeyPair):
        self.key_pair = key_pair

    def verify(self, token: str) -> Dict[str, Any]:
        # aud is whatever client asked for the token, so it is not checked here
        try:
            return jwt.decode(
                token,
                self.key_pair.public_pem,
                algorithms=[SIGNING_ALG],
                options={"verify_aud": False, "require": ["exp"]},
            )
        except jwt.PyJWTError as e:
            logger.debug("Token verification failed: %s", e)
            raise VerificationError("invalid_token") from e

    def userinfo(self, token: str) -> UserInfo:
        return UserInfo.from_claims(self.verify(token))
