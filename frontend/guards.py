from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .auth import AuthStore

HOME_ROUTE = "/"
LOGIN_ROUTE = "/auth/login"


def require_auth(auth: "AuthStore") -> Optional[str]:
    """Redirect target for pages that need a signed-in user, None to proceed."""
    if not auth.is_authenticated:
        return LOGIN_ROUTE
    return None


def require_guest(auth: "AuthStore") -> Optional[str]:
    """Redirect target for sign-in/sign-up pages once a user is signed in."""
    if auth.is_authenticated:
        return HOME_ROUTE
    return None
