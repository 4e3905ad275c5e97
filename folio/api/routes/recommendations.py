"""Recommendation routes."""

from fastapi import APIRouter, Depends, HTTPException, Query

from folio.api.dependencies import get_recommender
from folio.api.schemas import RecommendationItem, RecommendationsResponse
from folio.domain.errors import NotFoundError
from folio.ports.recommender import RecommenderPort

router = APIRouter(tags=["Recommendations"])


@router.get(
    "/users/{user_id}/recommendations", response_model=RecommendationsResponse
)
async def get_recommendations(
    user_id: str,
    limit: int = Query(5, ge=1, le=50),
    genre: str | None = Query(None),
    refresh: bool = Query(False),
    recommender: RecommenderPort = Depends(get_recommender),
) -> RecommendationsResponse:
    """Get personalized book suggestions for a user."""
    try:
        results = await recommender.recommend(
            user_id, limit=limit, genre=genre or None, force_refresh=refresh
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    items = [RecommendationItem.model_validate(rec) for rec in results]
    return RecommendationsResponse(count=len(items), data=items)
