from typing import Optional
from sqlmodel import SQLModel, Field

class AppConfig(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    key: str
    value: str

class BookmarkNode(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    parent_id: Optional[int] = Field(default=None, index=True)
    title: str = ""
    url: Optional[str] = None
    position: int = 0
