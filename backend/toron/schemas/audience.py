from typing import Optional

from pydantic import BaseModel


class VoteRequest(BaseModel):
    side: str = ""


class CommentCreateRequest(BaseModel):
    content: str = ""
    nickname: Optional[str] = None
    side: Optional[str] = None
    is_tag_in: bool = False
