import hmac

from fastapi import HTTPException, Header

from config import settings


def verify_admin(x_api_key: str = Header(default="")):
    if not hmac.compare_digest(x_api_key.encode("utf-8"), settings.admin_api_key.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid admin API key")
