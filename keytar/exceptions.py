class KeytarError(Exception):
    """Base class for errors raised by the token core."""


class UserNotFound(KeytarError):
    def __init__(self, username: str):
        super().__init__(f"user_not_found: {username}")
        self.username = username


class ClientNotFound(KeytarError):
    def __init__(self, client_id: str):
        super().__init__(f"client_not_found: {client_id}")
        self.client_id = client_id


class RedirectUriNotAllowed(KeytarError):
    def __init__(self, client_id: str, redirect_uri: str):
        super().__init__(f"redirect_uri_not_allowed: {redirect_uri} (client {client_id})")
        self.client_id = client_id
        self.redirect_uri = redirect_uri


class VerificationError(KeytarError):
    pass
