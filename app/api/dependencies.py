from __future__ import annotations
from functools import lru_cache
from fastapi import Depends, Header, HTTPException
from app.clients.catalog import CatalogClient
from app.clients.push import FcmPushClient, IPushClient
from app.core.config import STORE_BACKEND
from app.repositories.base import IDocumentStore
from app.repositories.memory import InMemoryDocumentStore
from app.repositories.supabase import SupabaseDocumentStore
from app.services.aggregation_service import AggregationService
from app.services.buddy_service import BuddyService
from app.services.counter_service import CounterService, ReactionService
from app.services.feed_service import FeedService
from app.services.notification_service import NotificationService
from app.services.rating_service import RatingService
from app.services.recommendation_service import RecommendationService
from app.services.user_service import UserService
from app.triggers.handlers import TriggerHandlers


@lru_cache(maxsize=1)
def get_document_store() -> IDocumentStore:
    """
    문서 저장소 의존성 주입 (Singleton via lru_cache)

    Returns:
        IDocumentStore: STORE_BACKEND=memory면 In-Memory, 그 외에는 Supabase 구현체
    """
    if STORE_BACKEND == "memory":
        return InMemoryDocumentStore()
    return SupabaseDocumentStore()


@lru_cache(maxsize=1)
def get_push_client() -> IPushClient:
    return FcmPushClient()


@lru_cache(maxsize=1)
def get_catalog_client() -> CatalogClient:
    return CatalogClient()


def get_user_service(store: IDocumentStore = Depends(get_document_store)) -> UserService:
    return UserService(store)


def get_buddy_service(store: IDocumentStore = Depends(get_document_store)) -> BuddyService:
    return BuddyService(store)


def get_recommendation_service(store: IDocumentStore = Depends(get_document_store)) -> RecommendationService:
    return RecommendationService(store)


def get_rating_service(
    store: IDocumentStore = Depends(get_document_store),
    recommendation_service: RecommendationService = Depends(get_recommendation_service),
    catalog_client: CatalogClient = Depends(get_catalog_client),
) -> RatingService:
    return RatingService(store, recommendation_service, catalog_client)


def get_reaction_service(store: IDocumentStore = Depends(get_document_store)) -> ReactionService:
    return ReactionService(store)


def get_aggregation_service(store: IDocumentStore = Depends(get_document_store)) -> AggregationService:
    return AggregationService(store)


def get_feed_service(
    store: IDocumentStore = Depends(get_document_store),
    buddy_service: BuddyService = Depends(get_buddy_service),
) -> FeedService:
    return FeedService(store, buddy_service)


def get_trigger_handlers(
    store: IDocumentStore = Depends(get_document_store),
    push_client: IPushClient = Depends(get_push_client),
) -> TriggerHandlers:
    notification_service = NotificationService(store, push_client, UserService(store), BuddyService(store))
    return TriggerHandlers(CounterService(store), notification_service)


def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id")
) -> str:
    """
    X-User-Id 헤더 검증 및 반환 Dependency

    Note:
        인증(OAuth)은 게이트웨이에서 처리하고 검증된 사용자 ID만 헤더로 전달된다고 가정합니다.

    Raises:
        HTTPException(400): 헤더가 없거나 비어있는 경우
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=400,
            detail="X-User-Id header is required and cannot be empty"
        )
    return x_user_id.strip()
