"""
알림 팬아웃 서비스

트리거 이벤트(추천 생성, 평점/리뷰 작성)마다 수신 대상을 정하고,
대상의 모든 디바이스 토큰으로 알림을 독립적으로 발송합니다.

- 추천 생성: 받은 사람 1명
- 평점 작성: 평점 작성자의 모든 버디 (프로필은 10개 단위 "in" 조회)
- 토큰별 발송은 각각 별도 태스크로 동시에 실행하며, 하나의 실패가 다른 발송을 막지 않습니다.
- InvalidDeliveryTokenError인 토큰만 사용자 토큰 목록에서 제거하고, 나머지 실패는 로깅만 합니다.
"""

from __future__ import annotations
import asyncio
import logging
from enum import Enum
from typing import Optional, Sequence
from app.clients.push import IPushClient
from app.core.config import NOTIFICATION_APP_TITLE
from app.core.logging_config import mask_token
from app.exception.notification.notification_exception import DeliveryFailedError, InvalidDeliveryTokenError
from app.exception.store.store_exception import DocumentNotFoundError, StoreOperationError
from app.models.notification import FanOutReport, NotificationKind, NotificationPayload
from app.models.rating import Rating, has_text
from app.models.recommendation import Recommendation
from app.models.user import UserProfile
from app.repositories.base import IDocumentStore
from app.services.buddy_service import BuddyService
from app.services.user_service import FCM_TOKENS_FIELD, USERS_COLLECTION, UserService

logger = logging.getLogger("app")

VOWELS = ("a", "e", "i", "o", "u")


# ----------------------------------------------------------------------
# 알림 문구
# ----------------------------------------------------------------------

def article_for(label: str) -> str:
    """소문자 라벨이 모음으로 시작하면 "an", 아니면 "a" (artist -> an, song -> a)"""
    return "an" if label.lower().startswith(VOWELS) else "a"


def recommendation_body(rec: Recommendation) -> str:
    sender = rec.sender_username or "Someone"
    label = rec.item_type.label
    body = f'{sender} sent you {article_for(label)} {label} "{rec.item.name}"'
    if rec.message:
        body += f" and said: {rec.message}"
    return body


def rating_notification_kind(before: Optional[Rating], after: Optional[Rating]) -> Optional[NotificationKind]:
    """
    평점 쓰기 이벤트가 알림 대상인지 판단

    - 새 평점: RATING (리뷰가 함께 있으면 REVIEW)
    - 리뷰가 없던 평점에 리뷰가 생긴 수정: REVIEW
    - 그 외 수정(점수만 변경, 기존 리뷰 수정)과 삭제: None

    Note:
        before 스냅샷은 트리거 시점의 값이므로 빠른 연속 쓰기에서는 오래된 값일 수 있고,
        이 경우 리뷰 알림이 두 번 나갈 수 있습니다. 별도 중복 제거는 하지 않습니다.
    """
    if after is None:
        return None
    is_new = before is None
    had_review = before is not None and has_text(before.review_text)
    is_new_review = has_text(after.review_text) and not had_review

    if not is_new and not is_new_review:
        return None
    return NotificationKind.REVIEW if is_new_review else NotificationKind.RATING


def rating_body(rating: Rating, kind: NotificationKind) -> str:
    artist = rating.item.artist_name
    by_artist = f" by {artist}" if artist else ""
    if kind == NotificationKind.REVIEW:
        return f"{rating.display_name} reviewed {rating.item.name}{by_artist} ({rating.score}%)"
    return f"{rating.display_name} rated {rating.item.name}{by_artist} {rating.score}%"


def build_recommendation_payload(rec: Recommendation) -> NotificationPayload:
    return NotificationPayload(
        title=NOTIFICATION_APP_TITLE,
        body=recommendation_body(rec),
        data={
            "type": NotificationKind.RECOMMENDATION.value,
            "recommendationId": rec.id,
            "itemId": rec.item_id,
            "itemType": rec.item_type.value,
        },
    )


def build_rating_payload(rating: Rating, kind: NotificationKind) -> NotificationPayload:
    return NotificationPayload(
        title="New Review" if kind == NotificationKind.REVIEW else "New Rating",
        body=rating_body(rating, kind),
        data={
            "type": kind.value,
            "ratingId": rating.id,
            "userId": rating.user_id,
            "itemId": rating.item_id,
            "itemType": rating.item_type.value,
            "itemName": rating.item.name,
        },
    )


# ----------------------------------------------------------------------
# 팬아웃
# ----------------------------------------------------------------------

class DispatchOutcome(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    PRUNED = "pruned"


class NotificationService:
    """
    이벤트별 알림 팬아웃

    FanOutReport 집계 규칙:
        recipients는 토큰이 하나 이상 있는 수신자 수,
        pruned는 무효 토큰으로 제거된 수이며 failed에는 포함하지 않습니다.
    """

    def __init__(
        self,
        store: IDocumentStore,
        push_client: IPushClient,
        user_service: UserService,
        buddy_service: BuddyService,
    ):
        self.store = store
        self.push_client = push_client
        self.user_service = user_service
        self.buddy_service = buddy_service

    async def notify_recommendation(self, rec: Recommendation) -> FanOutReport:
        """추천 생성 시 받은 사람에게 알림"""
        logger.info(f"New recommendation: {rec.sender_username or 'Someone'} sent {rec.item.name} to {rec.receiver_id}")

        receiver = await self.user_service.get_profile(rec.receiver_id)
        if receiver is None:
            logger.info(f"User {rec.receiver_id} not found, skipping notification")
            return FanOutReport()

        return await self.dispatch([receiver], build_recommendation_payload(rec))

    async def notify_rating(self, before: Optional[Rating], after: Optional[Rating]) -> Optional[FanOutReport]:
        """
        평점/리뷰 작성 시 작성자의 모든 버디에게 알림

        Returns:
            Optional[FanOutReport]: 알림 대상이 아닌 쓰기면 None
        """
        kind = rating_notification_kind(before, after)
        if kind is None:
            logger.info("Rating update without new review, skipping notification")
            return None

        logger.info(f"{after.display_name} {kind.value}: {after.item.name} ({after.score}%)")

        buddy_ids = await self.buddy_service.list_buddy_ids(after.user_id)
        if not buddy_ids:
            logger.info(f"User {after.user_id} has no buddies, skipping notifications")
            return FanOutReport()

        recipients = await self.user_service.fetch_profiles(buddy_ids)
        return await self.dispatch(recipients, build_rating_payload(after, kind))

    async def dispatch(self, recipients: Sequence[UserProfile], payload: NotificationPayload) -> FanOutReport:
        """
        모든 수신자의 모든 토큰으로 동시에 발송하고 전체 완료까지 대기

        일부 발송이 실패해도 예외를 올리지 않습니다.
        """
        jobs = []
        recipient_count = 0
        for user in recipients:
            tokens = list(dict.fromkeys(user.fcm_tokens))
            if not tokens:
                logger.info(f"No FCM tokens for user {user.id}")
                continue
            recipient_count += 1
            jobs.extend((user.id, token) for token in tokens)

        results = await asyncio.gather(
            *[self._send_one(user_id, token, payload) for user_id, token in jobs],
            return_exceptions=True,
        )

        report = FanOutReport(recipients=recipient_count)
        for (user_id, token), result in zip(jobs, results):
            if isinstance(result, BaseException):
                # 예상하지 못한 오류도 해당 토큰 하나의 실패로만 취급
                logger.error(
                    f"Unexpected error sending to user {user_id}, token {mask_token(token)}: {result}",
                    exc_info=result,
                )
                report.failed += 1
            elif result == DispatchOutcome.SENT:
                report.sent += 1
            elif result == DispatchOutcome.PRUNED:
                report.pruned += 1
            else:
                report.failed += 1

        logger.info({
            "event": "fanout_completed",
            "type": payload.data.get("type"),
            "recipients": report.recipients,
            "sent": report.sent,
            "failed": report.failed,
            "pruned": report.pruned,
        })
        return report

    async def _send_one(self, user_id: str, token: str, payload: NotificationPayload) -> DispatchOutcome:
        try:
            await self.push_client.send(token, payload)
            logger.info(f"Notification sent to user {user_id}, token: {mask_token(token)}")
            return DispatchOutcome.SENT
        except InvalidDeliveryTokenError:
            logger.info(f"Removing invalid token from user {user_id}: {mask_token(token)}")
            await self._prune_token(user_id, token)
            return DispatchOutcome.PRUNED
        except DeliveryFailedError as e:
            logger.error({
                "event": "notification_delivery_failed",
                "errorCode": e.error_code.value,
                "message": e.message,
                "user": user_id,
                "token": token,
            })
            return DispatchOutcome.FAILED

    async def _prune_token(self, user_id: str, token: str) -> None:
        try:
            await self.store.array_remove(USERS_COLLECTION, user_id, FCM_TOKENS_FIELD, token)
        except (StoreOperationError, DocumentNotFoundError) as e:
            logger.error({
                "event": "token_prune_failed",
                "errorCode": e.error_code.value,
                "message": e.message,
                "user": user_id,
                "token": token,
            })
