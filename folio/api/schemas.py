"""Response models for the HTTP surface."""

from pydantic import BaseModel, ConfigDict


class RecommendationItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    author: str
    reason: str
    genres: list[str] = []
    published_year: int | None = None
    average_rating: float | None = None
    review_count: int | None = None
    description: str = ""
    cover_image: str = ""
    source: str = "catalog"


class RecommendationsResponse(BaseModel):
    success: bool = True
    count: int
    data: list[RecommendationItem]
