from pydantic import BaseModel, ConfigDict

from relcis.schemas.common import CamelModel


class SearchResultItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: str
    url: str
    description: str = ""


class SearchResponse(BaseModel):
    success: bool = True
    results: list[SearchResultItem]


class ImageResultItem(CamelModel):
    image_url: str
    thumbnail_url: str
    title: str = ""
    source_url: str = ""
    source_name: str = ""
    width: int | None = None
    height: int | None = None
    persisted_url: str | None = None


class ImageSearchResponse(BaseModel):
    success: bool
    engine: str
    query: str
    results: list[ImageResultItem] | None = None
    count: int | None = None
    error: str | None = None
