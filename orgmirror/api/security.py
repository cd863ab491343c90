from fastapi import Security, HTTPException, status
from fastapi.security import APIKeyHeader

from orgmirror.config import settings

API_KEY_NAME = "X-OrgMirror-API-KEY"

api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=True)


async def get_api_key(api_key_header: str = Security(api_key_header)):
    if not settings.OM_API_KEY:
        # The server itself has no key configured.
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API Key not configured on server.",
        )

    if api_key_header == settings.OM_API_KEY:
        return api_key_header
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing API Key",
    )
