import hmac

from fastapi import Depends, HTTPException, Request, status

from . import config

LOOPBACK_HOSTS = frozenset({"127.0.0.1", "::1", "localhost"})


def _bearer_token(request: Request) -> str:
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return credentials.strip()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_api_auth(request: Request) -> None:
    """
    Guard for the agent endpoints.

    With FINANCE_AGENT_API_TOKEN set, every request must carry
    `Authorization: Bearer <token>` (compared in constant time).
    Without it, only loopback clients are served.
    """
    expected = config.API_TOKEN
    if expected:
        supplied = _bearer_token(request)
        if not hmac.compare_digest(supplied.encode(), expected.encode()):
            raise _unauthorized("Invalid or missing API token.")
        return

    client_host = request.client.host if request.client else ""
    if client_host not in LOOPBACK_HOSTS:
        raise _unauthorized("Remote access requires FINANCE_AGENT_API_TOKEN.")


RequireAPIAuth = Depends(require_api_auth)
