import argparse
import asyncio
import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.api.dependencies import get_document_store
from app.core.logging_config import setup_logging
from app.models.reaction import CounterTarget
from app.services.counter_service import (
    COMMENTS_FIELD,
    LIKES_FIELD,
    RATINGS_COLLECTION,
    CounterService,
    comment_likes_path,
    comments_path,
    review_likes_path,
)


async def recount_rating(rating_id: str) -> None:
    """
    평점 하나와 그 댓글들의 likesCount/commentsCount를 실제 문서 수로 덮어씁니다.

    Note:
        트리거 전달이 정확히 한 번 보장되지 않으므로 드리프트가 의심될 때 수동으로 실행합니다.
    """
    store = get_document_store()
    counters = CounterService(store)

    likes = await counters.recount(
        CounterTarget(path=RATINGS_COLLECTION, doc_id=rating_id, field=LIKES_FIELD),
        review_likes_path(rating_id),
    )
    comments = await counters.recount(
        CounterTarget(path=RATINGS_COLLECTION, doc_id=rating_id, field=COMMENTS_FIELD),
        comments_path(rating_id),
    )
    print(f"{rating_id}: likes={likes} comments={comments}")

    for comment in await store.query(comments_path(rating_id)):
        comment_likes = await counters.recount(
            CounterTarget(path=comments_path(rating_id), doc_id=comment["id"], field=LIKES_FIELD),
            comment_likes_path(rating_id, comment["id"]),
        )
        print(f"  comment {comment['id']}: likes={comment_likes}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Recount reaction counters for ratings")
    parser.add_argument("rating_ids", nargs="+")
    args = parser.parse_args()

    setup_logging()

    async def _run():
        for rating_id in args.rating_ids:
            await recount_rating(rating_id)

    asyncio.run(_run())
