from __future__ import annotations
import asyncio
import logging
from typing import List, Optional, Sequence
from app.core.logging_config import mask_token
from app.exception.store.store_exception import StoreOperationError
from app.models.store import where
from app.models.user import UserProfile
from app.repositories.base import IDocumentStore
from app.utils.chunking import chunked

logger = logging.getLogger("app")

USERS_COLLECTION = "users"
FCM_TOKENS_FIELD = "fcmTokens"


class UserService:
    """사용자 프로필 조회와 디바이스 토큰 관리"""

    def __init__(self, store: IDocumentStore):
        self.store = store

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        doc = await self.store.get(USERS_COLLECTION, user_id)
        return UserProfile.from_document(doc) if doc is not None else None

    async def profile_or_placeholder(self, user_id: str) -> UserProfile:
        """프로필 문서가 없으면 ID만 채운 스냅샷을 반환 (반응/요청의 행위자 정보용)"""
        profile = await self.get_profile(user_id)
        return profile or UserProfile(id=user_id)

    async def save_profile(self, profile: UserProfile) -> None:
        await self.store.set(USERS_COLLECTION, profile.id, profile.to_document(), merge=True)

    async def fetch_profiles(self, user_ids: Sequence[str]) -> List[UserProfile]:
        """
        여러 사용자 프로필을 "in" 조회로 가져오기

        Note:
            "in" 조건은 10개까지만 허용되므로 10개씩 나눠 동시에 조회합니다.
            한 묶음이 실패하면 로깅 후 해당 묶음만 빠진 결과를 반환합니다 (best-effort).
        """
        unique_ids = list(dict.fromkeys(user_ids))
        if not unique_ids:
            return []

        async def fetch_chunk(chunk: List[str]) -> List[UserProfile]:
            try:
                docs = await self.store.query(USERS_COLLECTION, [where("id", "in", chunk)])
            except StoreOperationError as e:
                logger.error({
                    "event": "user_chunk_query_failed",
                    "errorCode": e.error_code.value,
                    "message": e.message,
                    "chunkSize": len(chunk),
                })
                return []
            return [UserProfile.from_document(doc) for doc in docs]

        results = await asyncio.gather(*[fetch_chunk(chunk) for chunk in chunked(unique_ids)])
        return [profile for chunk_profiles in results for profile in chunk_profiles]

    async def register_token(self, user_id: str, token: str) -> None:
        """디바이스 토큰 등록 (중복 없이 추가). 사용자 문서가 없으면 새로 만듭니다."""
        existing = await self.store.get(USERS_COLLECTION, user_id)
        if existing is None:
            profile = UserProfile(id=user_id, fcm_tokens=[token])
            await self.store.set(USERS_COLLECTION, user_id, profile.to_document())
        else:
            await self.store.array_union(USERS_COLLECTION, user_id, FCM_TOKENS_FIELD, token)
        logger.info(f"Registered device token {mask_token(token)} for user {user_id}")

    async def unregister_token(self, user_id: str, token: str) -> None:
        await self.store.array_remove(USERS_COLLECTION, user_id, FCM_TOKENS_FIELD, token)
        logger.info(f"Unregistered device token {mask_token(token)} for user {user_id}")
