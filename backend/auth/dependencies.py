from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.auth import jwt_handler

security = HTTPBearer()


def get_current_manager_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    try:
        payload = jwt_handler.decode_manager_token(credentials.credentials)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    manager_id = payload.get("sub")
    if not manager_id:
        raise HTTPException(status_code=401, detail="Invalid token subject")
    if payload.get("role") != "manager":
        raise HTTPException(status_code=403, detail="Only property managers can manage scheduling")
    return str(manager_id)
