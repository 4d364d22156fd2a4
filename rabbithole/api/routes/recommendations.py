"""Reading recommendations endpoint. Always answers 200."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from rabbithole.api.middleware.user_auth import AuthenticatedUser, get_current_user
from rabbithole.recommendations.generator import RecommendationGenerator

router = APIRouter(tags=["recommendations"])


def get_recommendation_generator() -> RecommendationGenerator:
    return RecommendationGenerator()


@router.get("/recommendations")
def get_recommendations(
    user: AuthenticatedUser = Depends(get_current_user),
    generator: RecommendationGenerator = Depends(get_recommendation_generator),
) -> dict[str, Any]:
    return generator.generate(user.id).to_response()
