from pydantic import BaseModel, Field
from typing import List
from app.core.auth.schemas import UserResponse
from app.shared.schemas.common import BaseResponse

class RoleUpdateRequest(BaseModel):
    role: str = Field(..., pattern="^(admin|vendedor)$")

class UserActionResponse(BaseResponse):
    user: UserResponse

class UserListResponse(BaseResponse):
    users: List[UserResponse]
    count: int
    pending_activation: int
