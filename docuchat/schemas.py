from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import FileStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Credentials(CamelModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=6, max_length=128)

class UserOut(CamelModel):
    id: int
    username: str

class TokenResponse(CamelModel):
    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserOut


class ChatCreate(CamelModel):
    name: Optional[str] = None

class ChatRename(CamelModel):
    name: str = Field(min_length=1, max_length=255)


class SourceChunk(CamelModel):
    content: str
    file_id: str
    source: str
    page_number: int


class MessageOut(CamelModel):
    id: int
    chat_id: str
    role: str
    content: str
    sources: Optional[List[SourceChunk]] = None
    created_at: datetime


class FileOut(CamelModel):
    id: str
    chat_id: str
    filename: str
    url: str
    status: FileStatus
    created_at: datetime


class ChatOut(CamelModel):
    id: str
    user_id: int
    name: str
    created_at: datetime
    updated_at: datetime


class ChatSummary(ChatOut):
    files: List[FileOut] = []
    latest_message: Optional[MessageOut] = None


class ChatDetail(ChatOut):
    files: List[FileOut] = []
    messages: List[MessageOut] = []


class UploadResponse(CamelModel):
    message: str = "uploaded"
    file: FileOut


class DeleteResponse(CamelModel):
    success: bool = True
    message: str


class AskRequest(CamelModel):
    message: str = Field(min_length=1)


class AskResponse(CamelModel):
    message: str
    sources: List[SourceChunk]
