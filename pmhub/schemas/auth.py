import uuid
from pydantic import BaseModel
from typing import Optional, List


class LoginRequest(BaseModel):
    identifier: str  # username or email
    password: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class MeResponse(BaseModel):
    id: uuid.UUID
    tenant_id: uuid.UUID
    username: str
    email: str
    full_name: Optional[str] = None
    timezone: Optional[str] = None
    roles: List[str] = []
    permissions: List[str] = []
