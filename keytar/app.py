import logging
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from fastapi import FastAPI, Form, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from keytar import __version__
from keytar.claims_processing.claims import display_name
from keytar.config import Settings, load_realm_config
from keytar.exceptions import RedirectUriNotAllowed, VerificationError
from keytar.keys import SIGNING_ALG, KeyPair
from keytar.realm import RealmConfig
from keytar.redirects import check_redirect_uri
from keytar.tokens import TokenIssuer, TokenVerifier

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
DEFAULT_SCOPE = "openid email profile"
GET_TOKEN_SCOPES = ("openid", "email", "profile", "userinfo")

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def split_scope(scope: Optional[str]) -> list:
    return [s for s in (scope or DEFAULT_SCOPE).split(" ") if s]


def fragment_redirect_url(redirect_uri: str, params: Dict[str, str]) -> str:
    parts = urlsplit(redirect_uri)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"not an absolute URL: {redirect_uri}")
    return urlunsplit(parts._replace(fragment=urlencode(params)))


def bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization", "")
    if not auth.lower().startswith("bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


def create_app(
    settings: Optional[Settings] = None,
    realm: Optional[RealmConfig] = None,
    key_pair: Optional[KeyPair] = None,
) -> FastAPI:
    if settings is None:
        settings = Settings.from_env()
    if realm is None:
        realm = load_realm_config(settings.realm_config_paths(), settings.token_expiry)
    if key_pair is None:
        key_pair = KeyPair.generate()

    issuer = TokenIssuer(realm, key_pair, settings.issuer, settings.token_expiry)
    verifier = TokenVerifier(key_pair)

    logger.warning("Mock SSO - Development Only")
    if not settings.enforce_redirect_uris:
        logger.info("Redirect URI allow-lists are advisory (ENFORCE_REDIRECT_URIS=false)")

    app = FastAPI(title="Keytar mock SSO", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def response_headers(request: Request, call_next):
        resp = await call_next(request)
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["Referrer-Policy"] = "no-referrer"
        return resp

    def error_page(request: Request, title: str, message: str, status_code: int = 400) -> HTMLResponse:
        return templates.TemplateResponse(
            request, "error.html", {"title": title, "message": message}, status_code=status_code
        )

    def redirect_uri_rejected(client_id: str, redirect_uri: str) -> bool:
        """Apply the redirect policy; True when the request must be refused."""
        try:
            check_redirect_uri(realm, client_id, redirect_uri)
        except RedirectUriNotAllowed as e:
            if settings.enforce_redirect_uris:
                logger.warning("Rejecting %s", e)
                return True
            logger.warning('Redirect URI "%s" not in allowed list for client "%s"', e.redirect_uri, e.client_id)
        return False

    # =========================
    # Discovery + JWKS
    # =========================

    @app.get("/.well-known/openid-configuration")
    async def discovery():
        return {
            "issuer": settings.issuer,
            "authorization_endpoint": f"{settings.issuer}/auth",
            "userinfo_endpoint": f"{settings.issuer}/userinfo",
            "jwks_uri": f"{settings.issuer}/jwks",
            "response_types_supported": ["token", "id_token", "id_token token"],
            "subject_types_supported": ["public"],
            "id_token_signing_alg_values_supported": [SIGNING_ALG],
            "scopes_supported": list(GET_TOKEN_SCOPES),
        }

    @app.get("/jwks")
    async def jwks():
        return {"keys": [key_pair.public_jwk()]}

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "keytar"}

    # =========================
    # Programmatic tokens
    # =========================

    @app.get("/get-token")
    async def get_token(username: Optional[str] = Query(None), client_id: Optional[str] = Query(None)):
        if not username:
            return JSONResponse({"error": "Missing username parameter"}, status_code=400)

        user = realm.get_user(username)
        if user is None:
            return JSONResponse({"error": "User not found"}, status_code=404)

        tokens = issuer.issue_tokens(user, client_id or settings.default_client_id, None, GET_TOKEN_SCOPES)
        return {
            "access_token": tokens.access_token,
            "token_type": tokens.token_type,
            "expires_in": tokens.expires_in,
        }

    # =========================
    # UserInfo
    # =========================

    async def userinfo(request: Request):
        token = bearer_token(request)
        if not token:
            return JSONResponse({"error": "Missing or invalid authorization header"}, status_code=401)
        try:
            info = verifier.userinfo(token)
        except VerificationError as e:
            if settings.debug:
                logger.error("Token verification failed: %s", e.__cause__)
            return JSONResponse({"error": "Invalid or expired token"}, status_code=401)
        return info.model_dump()

    # =========================
    # UI: user selection + callback
    # =========================

    async def authorize(
        request: Request,
        client_id: Optional[str] = Query(None),
        redirect_uri: Optional[str] = Query(None),
        response_type: Optional[str] = Query(None),
        scope: Optional[str] = Query(None),
        nonce: Optional[str] = Query(None),
        state: Optional[str] = Query(None),
    ):
        if not client_id or not redirect_uri or not response_type:
            return error_page(
                request,
                "Error: Missing required parameters",
                "client_id, redirect_uri, and response_type are required",
            )

        if realm.get_client(client_id) is None:
            return error_page(request, "Error: Invalid client_id", f'Client "{client_id}" not found')

        if redirect_uri_rejected(client_id, redirect_uri):
            return error_page(
                request,
                "Error: Invalid redirect_uri",
                f'Redirect URI "{redirect_uri}" is not allowed for client "{client_id}"',
            )

        users = [
            {
                "username": u.username,
                "display_name": display_name(u) or u.username,
                "email": u.email or "",
                "roles": ", ".join(u.realm_roles) or "user",
            }
            for u in realm.enabled_users()
        ]
        return templates.TemplateResponse(request, "select_user.html", {
            "users": users,
            "callback_path": request.url.path.rstrip("/") + "/callback",
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": response_type,
            "scope": scope or DEFAULT_SCOPE,
            "nonce": nonce or "",
            "state": state or "",
        })

    async def authorize_callback(
        username: Optional[str] = Form(None),
        client_id: Optional[str] = Form(None),
        redirect_uri: Optional[str] = Form(None),
        response_type: Optional[str] = Form(None),
        scope: Optional[str] = Form(None),
        nonce: str = Form(""),
        state: Optional[str] = Form(None),
    ):
        user = realm.get_user(username)
        if user is None:
            return PlainTextResponse("User not found", status_code=400)

        if not redirect_uri:
            return PlainTextResponse("Missing redirect_uri", status_code=400)
        if redirect_uri_rejected(client_id or "", redirect_uri):
            return PlainTextResponse("Redirect URI not allowed", status_code=400)

        tokens = issuer.issue_tokens(user, client_id or "", nonce, split_scope(scope))

        params = {
            "access_token": tokens.access_token,
            "id_token": tokens.id_token,
            "token_type": tokens.token_type,
            "expires_in": str(tokens.expires_in),
            "session_state": tokens.session_state,
        }
        if state:
            params["state"] = state

        try:
            location = fragment_redirect_url(redirect_uri, params)
        except ValueError:
            return PlainTextResponse("Invalid redirect_uri", status_code=400)
        logger.info("Signed in %s for client %s", user.username, client_id)
        return RedirectResponse(url=location, status_code=302)

    # Keycloak clients call these under /realms/<realm>/protocol/openid-connect/...
    app.add_api_route("/userinfo", userinfo, methods=["GET"])
    app.add_api_route("/auth", authorize, methods=["GET"], response_class=HTMLResponse)
    app.add_api_route("/auth/callback", authorize_callback, methods=["POST"])
    app.add_api_route("/{prefix:path}/userinfo", userinfo, methods=["GET"])
    app.add_api_route("/{prefix:path}/auth", authorize, methods=["GET"], response_class=HTMLResponse)
    app.add_api_route("/{prefix:path}/auth/callback", authorize_callback, methods=["POST"])

    return app
