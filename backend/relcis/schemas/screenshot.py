from pydantic import BaseModel

from relcis.schemas.common import CamelModel


class Heading(BaseModel):
    tag: str
    text: str


class ImageRef(BaseModel):
    src: str
    alt: str


class PageSummaryModel(CamelModel):
    headings: list[Heading]
    images: list[ImageRef]
    meta_title: str
    meta_description: str


class ScreenshotResponse(CamelModel):
    success: bool = True
    screenshot_url: str
    html: PageSummaryModel


class PageReadResponse(CamelModel):
    success: bool = True
    html: str
    html_url: str
