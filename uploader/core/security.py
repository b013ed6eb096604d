import base64
import binascii
import secrets

from fastapi.security.utils import get_authorization_scheme_param

from uploader.core.config import Settings


def credentials_configured(settings: Settings) -> bool:
    return bool(settings.auth_user) and bool(settings.auth_password)


def parse_basic_authorization(authorization: str | None) -> tuple[bytes, bytes] | None:
    """Split a ``Basic`` Authorization header into raw user and password bytes.

    The payload is not decoded as text, so credentials in any encoding
    reach the comparison intact. Returns None when the header is absent,
    uses another scheme, or is not valid base64 with a ``:`` separator.
    """
    scheme, param = get_authorization_scheme_param(authorization)
    if not param or scheme.lower() != "basic":
        return None
    try:
        payload = base64.b64decode(param, validate=True)
    except (binascii.Error, ValueError):
        return None
    user, separator, password = payload.partition(b":")
    if not separator:
        return None
    return user, password


def _as_bytes(value: str | bytes) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def verify_credentials(
    expected_user: str,
    expected_password: str,
    user: str | bytes,
    password: str | bytes,
) -> bool:
    """Compare supplied Basic credentials against the configured pair.

    Both comparisons run on the full UTF-8 encoded values before being
    combined, so a wrong user name costs the same as a wrong password.
    """
    user_ok = secrets.compare_digest(_as_bytes(expected_user), _as_bytes(user))
    password_ok = secrets.compare_digest(_as_bytes(expected_password), _as_bytes(password))
    return user_ok and password_ok
