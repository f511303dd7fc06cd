from concurrent.futures import ThreadPoolExecutor

from starlette.requests import Request

from rastuci.utils.ratelimit import RATE_LIMITS, RateLimiter, get_client_id


def _limiter(start=1000.0):
    now = [start]
    return RateLimiter(clock=lambda: now[0]), now


def test_limit_th_request_passes_next_fails():
    rl, _ = _limiter()
    results = [rl.check("k", 5, 60) for _ in range(6)]
    assert [r.ok for r in results] == [True] * 5 + [False]
    assert results[0].remaining == 4
    assert results[4].remaining == 0
    assert results[5].remaining == 0


def test_window_expiry_resets_counter():
    rl, now = _limiter()
    for _ in range(3):
        rl.check("k", 3, 60)
    assert not rl.check("k", 3, 60).ok
    now[0] += 61
    r = rl.check("k", 3, 60)
    assert r.ok and r.remaining == 2
    assert r.reset_at == now[0] + 60


def test_keys_are_independent():
    rl, _ = _limiter()
    assert rl.check("a", 1, 60).ok
    assert not rl.check("a", 1, 60).ok
    assert rl.check("b", 1, 60).ok


def test_failure_only_counting():
    rl, now = _limiter()
    for _ in range(4):
        rl.hit("login:1.2.3.4", 900)
    assert not rl.is_blocked("login:1.2.3.4", 5)
    rl.hit("login:1.2.3.4", 900)
    assert rl.is_blocked("login:1.2.3.4", 5)
    rl.reset("login:1.2.3.4")
    assert not rl.is_blocked("login:1.2.3.4", 5)

    for _ in range(5):
        rl.hit("login:5.6.7.8", 900)
    now[0] += 901
    assert not rl.is_blocked("login:5.6.7.8", 5)


def test_presets():
    assert (RATE_LIMITS["api"].limit, RATE_LIMITS["api"].window_seconds) == (100, 900)
    assert (RATE_LIMITS["auth"].limit, RATE_LIMITS["auth"].window_seconds) == (5, 900)
    assert (RATE_LIMITS["order"].limit, RATE_LIMITS["order"].window_seconds) == (5, 60)
    assert (RATE_LIMITS["tracking"].limit, RATE_LIMITS["tracking"].window_seconds) == (30, 60)
    assert (RATE_LIMITS["webhook"].limit, RATE_LIMITS["webhook"].window_seconds) == (200, 900)


def _request(headers=(), client=("9.9.9.9", 1234)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.encode(), v.encode()) for k, v in headers],
        "client": client,
    }
    return Request(scope)


def test_client_id_resolution():
    assert get_client_id(_request([("x-forwarded-for", "1.1.1.1, 2.2.2.2")])) == "1.1.1.1"
    assert get_client_id(_request([("x-real-ip", "3.3.3.3")])) == "3.3.3.3"
    assert get_client_id(_request()) == "9.9.9.9"
    assert get_client_id(_request(client=None)) == "unknown"


def test_checkout_rate_limited(client):
    body = {"customer": {"name": "A", "email": "a@b.co"}, "items": [], "payment_method": "cash"}
    codes = [client.post("/api/checkout", json=body).status_code for _ in range(6)]
    assert codes[:5] == [400] * 5
    assert codes[5] == 429


def test_concurrent_checks_count_exactly():
    rl = RateLimiter()

    def worker(n):
        ok = 0
        for i in range(500):
            rl.check("ip:{0}:{1}".format(n, i), 10, 60)
            if i % 5 == 0 and rl.check("shared", 100, 60).ok:
                ok += 1
        return ok

    with ThreadPoolExecutor(max_workers=8) as pool:
        passed = sum(pool.map(worker, range(8)))
    assert passed == 100
