"""Subset of the ``yt-dlp --dump-json`` document this provider reads."""

from pydantic import BaseModel, ConfigDict, Field


class YtDlpFormat(BaseModel):
    model_config = ConfigDict(extra='ignore')

    format_id: str | None = None
    url: str | None = None
    ext: str | None = None
    vcodec: str | None = None
    acodec: str | None = None
    height: int | None = None


class YtDlpThumbnail(BaseModel):
    model_config = ConfigDict(extra='ignore')

    url: str | None = None
    preference: int | None = None


class YtDlpInfo(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: str | None = None
    title: str | None = None
    uploader: str | None = None
    uploader_id: str | None = None
    channel: str | None = None
    creator: str | None = None
    thumbnail: str | None = None
    thumbnails: list[YtDlpThumbnail] = Field(default_factory=list)
    duration: float | None = None
    url: str | None = None
    formats: list[YtDlpFormat] = Field(default_factory=list)

    @property
    def author(self) -> str | None:
        return self.uploader or self.channel or self.creator or self.uploader_id

    @property
    def has_media(self) -> bool:
        return bool(self.url) or any(f.url for f in self.formats)

    @property
    def has_video(self) -> bool:
        if not self.formats:
            return bool(self.url)
        return any(f.url and f.vcodec != 'none' for f in self.formats)

    @property
    def has_audio(self) -> bool:
        if not self.formats:
            return bool(self.url)
        return any(f.url and f.acodec != 'none' for f in self.formats)

    @property
    def thumbnail_candidates(self) -> list[str]:
        ranked = sorted(
            (t for t in self.thumbnails if t.url),
            key=lambda t: t.preference if t.preference is not None else 0,
            reverse=True,
        )
        return [t.url for t in ranked if t.url]
