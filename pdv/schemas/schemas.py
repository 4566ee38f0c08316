from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    name: str
    is_admin: bool
    created_at: datetime


class LoginResponse(BaseModel):
    message: str
    user: UserRead


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class BackupFileRead(BaseModel):
    filename: str
    path: str
    size: str
    size_bytes: int
    created: datetime


class BackupList(BaseModel):
    backups: List[BackupFileRead]
    count: int


class BackupActionRequest(BaseModel):
    action: str
    filename: Optional[str] = None


class BackupDeleteRequest(BaseModel):
    filename: str = Field(min_length=1)


class BackupActionResponse(MessageResponse):
    filename: str


class HealthResponse(BaseModel):
    status: str
    database: str
    gitSha: str
    buildTime: str
    env: str
