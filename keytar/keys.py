import base64
from dataclasses import dataclass, field
from typing import Any, Dict

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

SIGNING_ALG = "RS256"
DEFAULT_KID = "mock-sso-key"


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _int_to_b64url(x: int) -> str:
    return b64url(x.to_bytes((x.bit_length() + 7) // 8, "big"))


@dataclass(frozen=True)
class KeyPair:
    """The process signing key. Built once at startup and shared read-only."""

    kid: str
    private_pem: str = field(repr=False)
    public_pem: str

    @classmethod
    def generate(cls, kid: str = DEFAULT_KID, key_size: int = 2048) -> "KeyPair":
        key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
        priv_pem = key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode("utf-8")
        pub_pem = key.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("utf-8")
        return cls(kid=kid, private_pem=priv_pem, public_pem=pub_pem)

    def public_jwk(self) -> Dict[str, Any]:
        pub = serialization.load_pem_public_key(self.public_pem.encode("utf-8")).public_numbers()
        return {
            "kty": "RSA",
            "use": "sig",
            "alg": SIGNING_ALG,
            "kid": self.kid,
            "n": _int_to_b64url(pub.n),
            "e": _int_to_b64url(pub.e),
        }
