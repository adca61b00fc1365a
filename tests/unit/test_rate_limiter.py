import pytest

from app import rate_limiter
from app.rate_limiter import check_rate_limit, get_redis_client, reset_rate_limits


class FakeRedis:
    def __init__(self, count=None, ttl=-2):
        self.store = {}
        self.count = count
        self.remaining = ttl

    def get(self, key):
        return self.count

    def ttl(self, key):
        return self.remaining

    def set(self, key, value, ex=None):
        self.store[key] = (value, ex)


@pytest.fixture(autouse=True)
def clean_cache():
    reset_rate_limits()
    yield
    reset_rate_limits()


def test_allows_up_to_limit_then_blocks() -> None:
    results = [check_rate_limit("login:1.2.3.4", limit=3, window_seconds=60) for _ in range(4)]

    assert [allowed for allowed, _, _ in results] == [True, True, True, False]
    assert results[-1][1] == 3
    assert 0 < results[-1][2] <= 60


def test_keys_are_independent() -> None:
    check_rate_limit("login:a", limit=1, window_seconds=60)
    assert check_rate_limit("login:a", limit=1, window_seconds=60)[0] is False
    assert check_rate_limit("login:b", limit=1, window_seconds=60)[0] is True


def test_window_reset(monkeypatch) -> None:
    now = [1_000_000]
    monkeypatch.setattr(rate_limiter.time, "time", lambda: now[0])

    assert check_rate_limit("signup:x", limit=1, window_seconds=10)[0] is True
    assert check_rate_limit("signup:x", limit=1, window_seconds=10)[0] is False
    now[0] += 11
    assert check_rate_limit("signup:x", limit=1, window_seconds=10)[0] is True


def test_counts_seeded_from_redis() -> None:
    redis_client = FakeRedis(count="4", ttl=30)

    allowed, count, ttl = check_rate_limit("login:shared", limit=5, window_seconds=60, client=redis_client)
    assert allowed is True
    assert count == 5
    assert ttl <= 30

    assert check_rate_limit("login:shared", limit=5, window_seconds=60, client=redis_client)[0] is False


def test_no_redis_without_url(monkeypatch) -> None:
    monkeypatch.setattr(rate_limiter, "REDIS_URL", None)
    assert get_redis_client() is None
