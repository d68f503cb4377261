"""User 目录记录 -- 仅用于显示名查询与存在性校验"""

from datetime import datetime

from pydantic import BaseModel, Field


class User(BaseModel):
    user_id: str = Field(description="用户 ID")
    display_name: str = Field(description="显示名")
    created_at: datetime = Field(description="创建时间")
