"""TikTok item shapes embedded in web pages.

Both ``SIGI_STATE`` (``ItemModule``) and ``__UNIVERSAL_DATA_FOR_REHYDRATION__``
(``itemStruct``) describe a post with the same camelCase fields; the former
stores the author as a bare handle, the latter as an object.
"""

from pydantic import BaseModel, ConfigDict, Field


class TikTokAuthor(BaseModel):
    model_config = ConfigDict(extra='ignore')

    uniqueId: str | None = None
    nickname: str | None = None
    avatarThumb: str | None = None
    avatarMedium: str | None = None
    avatarLarger: str | None = None

    @property
    def avatar(self) -> str | None:
        return self.avatarMedium or self.avatarThumb or self.avatarLarger


class TikTokVideo(BaseModel):
    model_config = ConfigDict(extra='ignore')

    playAddr: str | None = None
    downloadAddr: str | None = None
    cover: str | None = None
    originCover: str | None = None
    dynamicCover: str | None = None
    duration: float | None = None


class TikTokMusic(BaseModel):
    model_config = ConfigDict(extra='ignore')

    playUrl: str | None = None
    title: str | None = None


class TikTokImageUrl(BaseModel):
    model_config = ConfigDict(extra='ignore')

    urlList: list[str] = Field(default_factory=list)


class TikTokImage(BaseModel):
    model_config = ConfigDict(extra='ignore')

    imageURL: TikTokImageUrl = Field(default_factory=TikTokImageUrl)


class TikTokImagePost(BaseModel):
    model_config = ConfigDict(extra='ignore')

    images: list[TikTokImage] = Field(default_factory=list)
    cover: TikTokImage | None = None


class TikTokItem(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: str | None = None
    desc: str | None = None
    author: TikTokAuthor | str | None = None
    video: TikTokVideo = Field(default_factory=TikTokVideo)
    music: TikTokMusic | None = None
    imagePost: TikTokImagePost | None = None

    @property
    def author_handle(self) -> str | None:
        if isinstance(self.author, TikTokAuthor):
            return self.author.uniqueId or self.author.nickname
        return self.author

    @property
    def image_urls(self) -> list[str]:
        if not self.imagePost:
            return []
        return [image.imageURL.urlList[0] for image in self.imagePost.images if image.imageURL.urlList]
