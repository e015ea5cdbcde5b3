import pytest
from unittest.mock import AsyncMock
from app.repositories.memory import InMemoryDocumentStore
from app.triggers.registry import trigger_registry


@pytest.fixture
def store():
    """테스트마다 독립적인 In-Memory 저장소"""
    return InMemoryDocumentStore()


@pytest.fixture
def push_client():
    """모든 발송이 성공하는 푸시 클라이언트 Mock"""
    client = AsyncMock()
    client.send.return_value = "projects/test/messages/1"
    return client


@pytest.fixture(autouse=True)
def clean_trigger_registry():
    """싱글톤 레지스트리의 등록 상태가 테스트 간에 새지 않도록 정리"""
    trigger_registry.clear()
    yield
    trigger_registry.clear()
