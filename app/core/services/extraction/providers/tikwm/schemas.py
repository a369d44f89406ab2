"""tikwm.com ``/api/`` response shapes."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TikwmAuthor(BaseModel):
    model_config = ConfigDict(extra='ignore')

    unique_id: str | None = None
    nickname: str | None = None
    avatar: str | None = None


class TikwmVideo(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: str | None = None
    title: str | None = None
    cover: str | None = None
    origin_cover: str | None = None
    ai_dynamic_cover: str | None = None
    duration: float | None = None
    play: str | None = None
    wmplay: str | None = None
    hdplay: str | None = None
    music: str | None = None
    images: list[str] = Field(default_factory=list)
    author: TikwmAuthor = Field(default_factory=TikwmAuthor)


class TikwmResponse(BaseModel):
    model_config = ConfigDict(extra='ignore')

    code: int
    msg: str | None = None
    data: Any = None
