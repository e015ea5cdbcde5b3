"""
버디 관계 조회/변경 서비스

버디 관계는 users/{a}/buddies/{b}, users/{b}/buddies/{a} 두 개의 방향성 문서로 표현됩니다.
피드 병합과 알림 팬아웃은 이 서비스의 list_buddy_ids()로 대상 범위를 정합니다.

대칭 쓰기:
    저장소에 다중 문서 트랜잭션이 없으므로 수락 시 두 엣지를 순서대로 따로 씁니다.
    엣지 쓰기가 실패하면 buddyEdgeRepairs 컬렉션에 복구 작업을 남기고,
    reconcile_repairs()가 나중에 이를 다시 적용합니다 (eventual consistency).
"""

from __future__ import annotations
import logging
from datetime import datetime
from typing import Callable, List, Optional
from app.exception.domain.domain_exception import InvalidStatusTransitionError
from app.exception.store.store_exception import DocumentNotFoundError, StoreOperationError
from app.models.buddy import Buddy, BuddyEdgeRepair, BuddyRequest, BuddyRequestStatus, BuddyStatus
from app.models.store import where
from app.models.user import UserProfile
from app.repositories.base import IDocumentStore
from app.utils.clock import utc_now

logger = logging.getLogger("app")

BUDDY_REQUESTS_COLLECTION = "buddyRequests"
BUDDY_EDGE_REPAIRS_COLLECTION = "buddyEdgeRepairs"


def buddies_path(user_id: str) -> str:
    return f"users/{user_id}/buddies"


class BuddyService:

    def __init__(self, store: IDocumentStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    # ------------------------------------------------------------------
    # 조회
    # ------------------------------------------------------------------

    async def is_buddy(self, user_id: str, other_id: str) -> bool:
        """user_id 아래에 other_id를 가리키는 엣지가 있는지 확인"""
        return await self.store.get(buddies_path(user_id), other_id) is not None

    async def get_request(self, request_id: str) -> Optional[BuddyRequest]:
        doc = await self.store.get(BUDDY_REQUESTS_COLLECTION, request_id)
        return BuddyRequest.from_document(doc) if doc is not None else None

    async def pending_status(self, user_id: str, other_id: str) -> BuddyStatus:
        """
        user_id 기준 관계 상태

        확인 순서: 버디 엣지 -> user_id가 보낸 요청 -> user_id가 받은 요청.
        요청은 pending 상태일 때만 유효합니다.
        """
        if await self.is_buddy(user_id, other_id):
            return BuddyStatus.BUDDIES

        sent = await self.get_request(BuddyRequest.make_id(user_id, other_id))
        if sent is not None and sent.status == BuddyRequestStatus.PENDING:
            return BuddyStatus.REQUEST_SENT

        received = await self.get_request(BuddyRequest.make_id(other_id, user_id))
        if received is not None and received.status == BuddyRequestStatus.PENDING:
            return BuddyStatus.REQUEST_RECEIVED

        return BuddyStatus.NOT_CONNECTED

    async def list_buddies(self, user_id: str) -> List[Buddy]:
        """버디 목록 (buddy_since 최신순)"""
        docs = await self.store.query(buddies_path(user_id), order_by="buddySince", descending=True)
        return [Buddy.from_document(doc) for doc in docs]

    async def list_buddy_ids(self, user_id: str) -> List[str]:
        return [buddy.id for buddy in await self.list_buddies(user_id)]

    async def pending_requests(self, user_id: str) -> List[BuddyRequest]:
        """받은 요청 중 pending (최신순)"""
        docs = await self.store.query(
            BUDDY_REQUESTS_COLLECTION,
            [where("toUserId", "==", user_id), where("status", "==", BuddyRequestStatus.PENDING.value)],
            order_by="createdAt",
            descending=True,
        )
        return [BuddyRequest.from_document(doc) for doc in docs]

    async def sent_requests(self, user_id: str) -> List[BuddyRequest]:
        """보낸 요청 중 pending"""
        docs = await self.store.query(
            BUDDY_REQUESTS_COLLECTION,
            [where("fromUserId", "==", user_id), where("status", "==", BuddyRequestStatus.PENDING.value)],
        )
        return [BuddyRequest.from_document(doc) for doc in docs]

    # ------------------------------------------------------------------
    # 요청 상태 변경
    # ------------------------------------------------------------------

    async def send_request(self, from_user: UserProfile, to_user: UserProfile) -> BuddyRequest:
        """
        버디 요청 보내기

        Note:
            같은 방향의 pending 요청이 이미 있으면 그대로 반환합니다 (멱등).

        Raises:
            InvalidStatusTransitionError: 이미 버디이거나, 같은 방향 요청이 이미 수락/거절된 경우
        """
        if from_user.id == to_user.id:
            raise InvalidStatusTransitionError("자기 자신에게 버디 요청을 보낼 수 없습니다.")
        if await self.is_buddy(from_user.id, to_user.id):
            raise InvalidStatusTransitionError("이미 버디입니다.")

        request_id = BuddyRequest.make_id(from_user.id, to_user.id)
        existing = await self.get_request(request_id)
        if existing is not None:
            if existing.status == BuddyRequestStatus.PENDING:
                return existing
            raise InvalidStatusTransitionError(f"이미 처리된 버디 요청입니다: {existing.status.value}")

        request = BuddyRequest(
            id=request_id,
            from_user_id=from_user.id,
            to_user_id=to_user.id,
            from_username=from_user.username or from_user.display_name,
            from_display_name=from_user.display_name,
            from_image_url=from_user.image_url,
            to_username=to_user.username,
            to_display_name=to_user.display_name,
            to_image_url=to_user.image_url,
            status=BuddyRequestStatus.PENDING,
            created_at=self.clock(),
        )
        await self.store.set(BUDDY_REQUESTS_COLLECTION, request_id, request.to_document())
        return request

    async def _close_request(self, request_id: str, status: BuddyRequestStatus) -> BuddyRequest:
        request = await self.get_request(request_id)
        if request is None:
            raise DocumentNotFoundError(f"버디 요청을 찾을 수 없습니다: {request_id}")
        # accepted/rejected는 종료 상태
        if request.status != BuddyRequestStatus.PENDING:
            raise InvalidStatusTransitionError(
                f"버디 요청 상태를 변경할 수 없습니다: {request.status.value} -> {status.value}"
            )
        await self.store.update(BUDDY_REQUESTS_COLLECTION, request_id, {"status": status.value})
        return request.model_copy(update={"status": status})

    async def accept_request(self, request_id: str) -> BuddyRequest:
        """
        요청 수락 후 대칭 엣지 두 개를 순서대로 기록

        Returns:
            BuddyRequest: 수락된 요청. 엣지 쓰기 실패는 복구 작업으로 남기고 예외로 올리지 않습니다.
        """
        request = await self._close_request(request_id, BuddyRequestStatus.ACCEPTED)
        now = self.clock()

        # 보낸 사람 아래에는 받은 사람, 받은 사람 아래에는 보낸 사람
        edges = [
            (request.from_user_id, Buddy(
                id=request.to_user_id,
                username=request.to_username,
                display_name=request.to_display_name,
                image_url=request.to_image_url,
                buddy_since=now,
            )),
            (request.to_user_id, Buddy(
                id=request.from_user_id,
                username=request.from_username,
                display_name=request.from_display_name,
                image_url=request.from_image_url,
                buddy_since=now,
            )),
        ]
        for owner_id, buddy in edges:
            await self._write_edge_or_record_repair(owner_id, buddy)

        logger.info(f"Buddy request accepted: {request.from_user_id} <-> {request.to_user_id}")
        return request

    async def reject_request(self, request_id: str) -> BuddyRequest:
        return await self._close_request(request_id, BuddyRequestStatus.REJECTED)

    async def cancel_request(self, request_id: str) -> None:
        """보낸 요청 철회 (문서 삭제)"""
        await self.store.delete(BUDDY_REQUESTS_COLLECTION, request_id)

    async def remove_buddy(self, user_id: str, buddy_id: str) -> None:
        """
        양쪽 엣지와 두 방향의 요청 문서를 모두 삭제

        Note:
            요청 문서를 지워야 이후 다시 버디 요청을 보낼 수 있습니다.
        """
        await self.store.delete(buddies_path(user_id), buddy_id)
        await self.store.delete(buddies_path(buddy_id), user_id)
        await self.store.delete(BUDDY_REQUESTS_COLLECTION, BuddyRequest.make_id(user_id, buddy_id))
        await self.store.delete(BUDDY_REQUESTS_COLLECTION, BuddyRequest.make_id(buddy_id, user_id))

    # ------------------------------------------------------------------
    # 대칭 엣지 복구
    # ------------------------------------------------------------------

    async def _write_edge_or_record_repair(self, owner_id: str, buddy: Buddy) -> bool:
        try:
            await self.store.set(buddies_path(owner_id), buddy.id, buddy.to_document())
            return True
        except StoreOperationError as e:
            repair = BuddyEdgeRepair(
                id=f"{owner_id}_{buddy.id}",
                owner_id=owner_id,
                buddy=buddy,
                created_at=self.clock(),
            )
            logger.error({
                "event": "buddy_edge_write_failed",
                "errorCode": e.error_code.value,
                "message": e.message,
                "owner": owner_id,
                "buddy": buddy.id,
            })
            # 복구 기록마저 실패하면 예외를 그대로 전파
            await self.store.set(BUDDY_EDGE_REPAIRS_COLLECTION, repair.id, repair.to_document())
            return False

    async def reconcile_repairs(self) -> int:
        """
        남아 있는 복구 작업을 다시 적용

        Returns:
            int: 이번 실행에서 복구된 엣지 수 (실패한 작업은 다음 실행을 위해 남겨 둠)
        """
        docs = await self.store.query(BUDDY_EDGE_REPAIRS_COLLECTION)
        repaired = 0
        for doc in docs:
            repair = BuddyEdgeRepair.from_document(doc)
            try:
                await self.store.set(buddies_path(repair.owner_id), repair.buddy.id, repair.buddy.to_document())
                await self.store.delete(BUDDY_EDGE_REPAIRS_COLLECTION, repair.id)
                repaired += 1
            except StoreOperationError as e:
                logger.warning(f"Buddy edge repair still failing ({repair.id}): {e.message}")
        if docs:
            logger.info(f"Reconciled {repaired}/{len(docs)} buddy edge repairs")
        return repaired
