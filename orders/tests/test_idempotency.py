from datetime import timedelta

import pytest
from django.core.management import call_command
from django.utils import timezone
from orders.models import IdempotencyKey
from orders.services import compute_request_hash, with_idempotency
from promotions.tests.factories import UserFactory


def _run(handler, **overrides):
    kwargs = {"key": "k-1", "user": None, "path": "/api/v1/orders/checkout/", "method": "post", "handler": handler}
    kwargs.update(overrides)
    return with_idempotency(**kwargs)


@pytest.mark.django_db
def test_stored_response_is_replayed_without_calling_handler():
    calls = []

    def handler():
        calls.append(1)
        return {"ok": True, "n": len(calls)}, 201

    assert _run(handler) == ({"ok": True, "n": 1}, 201)
    assert _run(handler) == ({"ok": True, "n": 1}, 201)
    assert len(calls) == 1


@pytest.mark.django_db
def test_key_scope_is_per_user():
    user = UserFactory()

    _run(lambda: ({"who": "anon"}, 200))
    body, _ = _run(lambda: ({"who": "user"}, 200), user=user)

    assert body == {"who": "user"}
    assert set(IdempotencyKey.objects.values_list("scope", flat=True)) == {"anon", f"user:{user.id}"}


@pytest.mark.django_db
def test_in_progress_key_is_conflict():
    IdempotencyKey.objects.create(key="k-1", scope="anon", path="/api/v1/orders/checkout/", method="POST")

    body, code = _run(lambda: ({}, 200))

    assert code == 409
    assert body["detail"] == "Request in progress"


@pytest.mark.django_db
def test_handler_error_drops_key():
    def boom():
        raise RuntimeError("gateway down")

    with pytest.raises(RuntimeError):
        _run(boom)

    assert not IdempotencyKey.objects.exists()
    assert _run(lambda: ({"ok": True}, 200)) == ({"ok": True}, 200)


def test_request_hash_ignores_key_order():
    assert compute_request_hash({"a": 1, "b": [1, 2]}) == compute_request_hash({"b": [1, 2], "a": 1})
    assert compute_request_hash({"a": 1}) != compute_request_hash({"a": 2})
    assert compute_request_hash({}) is None


@pytest.mark.django_db
def test_cleanup_command_removes_only_expired_keys():
    now = timezone.now()
    IdempotencyKey.objects.create(key="old", scope="anon", path="/", method="POST", expires_at=now - timedelta(hours=1))
    IdempotencyKey.objects.create(key="new", scope="anon", path="/", method="POST", expires_at=now + timedelta(hours=1))

    call_command("cleanup_idempotency")

    assert list(IdempotencyKey.objects.values_list("key", flat=True)) == ["new"]


# EOF
