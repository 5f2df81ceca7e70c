"""Tests for the database-backed rate limiter and the login lockout table."""
import database
from conftest import auth_headers, run
from middleware.global_rate_limit import (
    RATE_LIMITS,
    check_and_increment,
    check_rate_limit,
    cleanup_old_records,
    reset_identifier,
    window_start_for,
)
from utils.account_lockout import (
    check_lockout,
    cleanup_lockout_records,
    format_lockout_duration,
    lockout_duration_seconds,
    record_failed_attempt,
)

NOW = 1_700_000_040_000


def test_window_start_is_aligned():
    assert window_start_for(NOW, 60_000) == 1_700_000_040_000 - (1_700_000_040_000 % 60_000)


def test_requests_counted_until_limit():
    limit = RATE_LIMITS["ai"]["max_requests"]
    for i in range(limit):
        result = run(check_and_increment("1.2.3.4", "ai", now=NOW))
        assert result["allowed"]
        assert result["remaining"] == limit - i - 1

    blocked = run(check_and_increment("1.2.3.4", "ai", now=NOW))
    assert not blocked["allowed"]
    assert blocked["retry_after"] >= 1


def test_new_window_resets_count():
    limit = RATE_LIMITS["ai"]["max_requests"]
    for _ in range(limit + 1):
        run(check_and_increment("1.2.3.4", "ai", now=NOW))

    later = NOW + RATE_LIMITS["ai"]["window_ms"]
    assert run(check_and_increment("1.2.3.4", "ai", now=later))["allowed"]


def test_check_does_not_increment():
    run(check_and_increment("1.2.3.4", "api", now=NOW))
    first = run(check_rate_limit("1.2.3.4", "api", now=NOW))
    second = run(check_rate_limit("1.2.3.4", "api", now=NOW))
    assert first["remaining"] == second["remaining"] == RATE_LIMITS["api"]["max_requests"] - 1


def test_unknown_type_uses_default():
    result = run(check_and_increment("1.2.3.4", "mystery", now=NOW))
    assert result["limit"] == RATE_LIMITS["default"]["max_requests"]


def test_reset_identifier():
    run(check_and_increment("1.2.3.4", "api", now=NOW))
    run(check_and_increment("1.2.3.4", "admin", now=NOW))
    assert run(reset_identifier("1.2.3.4", "api")) == 1
    assert run(reset_identifier("1.2.3.4")) == 1


def test_cleanup_old_records():
    run(check_and_increment("old", "api", now=NOW))
    two_hours_later = NOW + 2 * 60 * 60 * 1000
    run(check_and_increment("fresh", "api", now=two_hours_later))
    assert run(cleanup_old_records(now=two_hours_later)) == 1
    remaining = run(database.rate_limits_collection.find({}).to_list(length=None))
    assert [r["identifier"] for r in remaining] == ["fresh"]


def test_admin_router_sets_headers(client, admin):
    r = client.get("/api/admin/audit/logs", headers=auth_headers(admin))
    assert r.status_code == 200
    assert r.headers["X-RateLimit-Limit"] == str(RATE_LIMITS["admin"]["max_requests"])


def test_admin_router_blocks_over_limit(client, admin):
    for _ in range(RATE_LIMITS["admin"]["max_requests"]):
        client.get("/api/admin/audit/stats", headers=auth_headers(admin))
    r = client.get("/api/admin/audit/stats", headers=auth_headers(admin))
    assert r.status_code == 429
    assert r.json()["error_code"] == "RATE_LIMITED"
    assert "Retry-After" in r.headers


def test_per_route_limit_on_password_reset(client):
    for _ in range(5):
        assert client.post("/api/auth/reset_password", json={"email": "ghost@example.com"}).status_code == 200
    r = client.post("/api/auth/reset_password", json={"email": "ghost@example.com"})
    assert r.status_code == 429
    assert r.json()["error_code"] == "RATE_LIMIT_EXCEEDED"
    assert r.json()["status_code"] == 429


def test_lockout_durations_escalate():
    assert lockout_duration_seconds(5) == 60
    assert lockout_duration_seconds(10) == 5 * 60
    assert lockout_duration_seconds(15) == 15 * 60
    assert lockout_duration_seconds(50) == 60 * 60
    assert format_lockout_duration(60) == "1 minute"
    assert format_lockout_duration(15 * 60) == "15 minutes"
    assert format_lockout_duration(60 * 60) == "1 hour"


def test_lockout_after_five_failures():
    for i in range(4):
        result = run(record_failed_attempt("Lena@Example.com", now=NOW + i))
        assert not result["locked"]
    assert run(check_lockout("lena@example.com", now=NOW + 10))["remaining_attempts"] == 1

    result = run(record_failed_attempt("lena@example.com", now=NOW + 5))
    assert result["locked"]
    assert result["lock_duration_seconds"] == 60

    status = run(check_lockout("lena@example.com", now=NOW + 1000))
    assert status["locked"]
    assert status["retry_after_seconds"] == 60

    assert not run(check_lockout("lena@example.com", now=NOW + 61_000))["locked"]


def test_old_failures_fall_out_of_window():
    run(record_failed_attempt("lena@example.com", now=NOW))
    later = NOW + 16 * 60 * 1000
    assert run(check_lockout("lena@example.com", now=later))["remaining_attempts"] == 5


def test_cleanup_lockout_records_removes_stale():
    for i in range(5):
        run(record_failed_attempt("locked@example.com", now=NOW + i))
    run(record_failed_attempt("stale@example.com", now=NOW))

    day_later = NOW + 25 * 60 * 60 * 1000
    assert run(cleanup_lockout_records(now=day_later)) == 2


def test_security_unlock(client, admin):
    for _ in range(5):
        run(record_failed_attempt("lena@example.com"))
    r = client.get("/api/admin/security/lockouts", headers=auth_headers(admin))
    assert [row["identifier"] for row in r.json()] == ["lena@example.com"]

    r = client.delete("/api/admin/security/lockouts/lena@example.com", headers=auth_headers(admin))
    assert r.status_code == 200
    assert not run(check_lockout("lena@example.com"))["locked"]

    r = client.delete("/api/admin/security/lockouts/lena@example.com", headers=auth_headers(admin))
    assert r.status_code == 404


def test_security_rate_limit_views(client, admin, superadmin):
    r = client.get("/api/admin/security/rate-limits/config", headers=auth_headers(admin))
    assert r.json()["admin"] == {"window_seconds": 60, "max_requests": 30}

    r = client.get("/api/admin/security/rate-limits/active", headers=auth_headers(admin))
    assert any(row["limit_type"] == "admin" for row in r.json())

    r = client.delete("/api/admin/security/rate-limits/testclient", headers=auth_headers(admin))
    assert r.status_code == 403
    r = client.delete("/api/admin/security/rate-limits/testclient", headers=auth_headers(superadmin))
    assert r.json()["deleted"] >= 1
