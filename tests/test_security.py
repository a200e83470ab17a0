from config import RATE_LIMIT_MESSAGES, RATE_LIMIT_WINDOW_SECONDS
from security.auth import is_authorized
from security.rate_limiter import allow


def test_rate_limiter_window():
    user_id = 987654321
    for i in range(RATE_LIMIT_MESSAGES):
        assert allow(user_id, now=1000.0 + i * 0.001)
    assert not allow(user_id, now=1000.5)
    assert allow(user_id, now=1000.0 + RATE_LIMIT_WINDOW_SECONDS + 1)


def test_empty_whitelist_allows_everyone(monkeypatch):
    monkeypatch.setattr("security.auth.ALLOWED_USER_IDS", [])
    assert is_authorized(1)
    monkeypatch.setattr("security.auth.ALLOWED_USER_IDS", [42])
    assert is_authorized(42)
    assert not is_authorized(1)
