import datetime as dt

import pytest
from django.core.management import call_command
from django.utils import timezone
from inventory.models import StockItem, StockReservation
from inventory.services import create_reservation, expire_reservations, extend_reservations_for, reservation_expiry
from inventory.tests.factories import StockItemFactory


@pytest.mark.django_db
def test_expire_reservations_releases_active_expired():
    item = StockItemFactory(quantity=10)

    expired_at = timezone.now() - dt.timedelta(minutes=5)
    res = create_reservation(product_id=item.product_id, quantity=3, reference="test:expiry", expires_at=expired_at)

    item.refresh_from_db()
    assert item.reserved == 3
    assert res.state == StockReservation.STATE_ACTIVE

    call_command("expire_reservations")

    item.refresh_from_db()
    res.refresh_from_db()
    assert item.reserved == 0
    assert res.state == StockReservation.STATE_RELEASED


@pytest.mark.django_db
def test_non_expired_reservations_remain_active():
    item = StockItemFactory(quantity=5)

    future = timezone.now() + dt.timedelta(minutes=30)
    res = create_reservation(product_id=item.product_id, quantity=2, reference="test:expiry", expires_at=future)

    call_command("expire_reservations")

    res.refresh_from_db()
    item = StockItem.objects.get(product_id=item.product_id)
    assert res.state == StockReservation.STATE_ACTIVE
    assert item.reserved == 2


@pytest.mark.django_db
def test_admission_expires_stale_holds_before_denying():
    item = StockItemFactory(quantity=1)
    stale = create_reservation(
        product_id=item.product_id,
        quantity=1,
        reference="order:ORD-000001",
        expires_at=timezone.now() - dt.timedelta(minutes=1),
    )

    fresh = create_reservation(product_id=item.product_id, quantity=1, reference="order:ORD-000002")

    stale.refresh_from_db()
    item.refresh_from_db()
    assert stale.state == StockReservation.STATE_RELEASED
    assert fresh.state == StockReservation.STATE_ACTIVE
    assert item.reserved == 1


def test_reservation_expiry_uses_configured_ttl(settings):
    settings.RESERVATION_TTL_MINUTES = 10
    now = timezone.now()
    assert reservation_expiry(now) == now + dt.timedelta(minutes=10)


@pytest.mark.django_db
def test_extend_reservations_only_moves_expiry_later():
    item = StockItemFactory(quantity=10)
    now = timezone.now()
    short = create_reservation(
        product_id=item.product_id, quantity=1, reference="order:EXT", expires_at=now + dt.timedelta(minutes=30)
    )
    long = create_reservation(
        product_id=item.product_id, quantity=1, reference="order:EXT", expires_at=now + dt.timedelta(days=10)
    )
    target = now + dt.timedelta(days=3)

    assert extend_reservations_for(reference="order:EXT", expires_at=target) == 1

    short.refresh_from_db()
    long.refresh_from_db()
    assert short.expires_at == target
    assert long.expires_at == now + dt.timedelta(days=10)
    assert expire_reservations(now=now + dt.timedelta(hours=1)) == 0


# EOF
