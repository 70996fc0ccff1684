"""
Tests for stock checks and reservations.
"""

import pytest

from database.connection import transaction
from fulfillment.errors import InsufficientStockError, NotFoundError
from fulfillment.inventory import check_availability, reserve_stock, release_stock


def test_check_availability_passes_with_enough_stock(db_session, chain):
    inventory = check_availability(db_session, chain.supplier.id, chain.product.id, 10)
    assert inventory.quantity == 10


def test_check_availability_reports_available_amount(db_session, chain):
    with pytest.raises(InsufficientStockError) as exc:
        check_availability(db_session, chain.supplier.id, chain.product.id, 11)
    assert "Available: 10" in exc.value.message


def test_check_availability_unknown_product(db_session, chain):
    with pytest.raises(NotFoundError):
        check_availability(db_session, chain.supplier.id, 9999, 1)


def test_reserve_and_release(db_session, chain):
    with transaction(db_session):
        reserve_stock(db_session, chain.supplier.id, chain.product.id, 4)
    db_session.refresh(chain.inventory)
    assert chain.inventory.quantity == 6

    with transaction(db_session):
        release_stock(db_session, chain.supplier.id, chain.product.id, 4)
    db_session.refresh(chain.inventory)
    assert chain.inventory.quantity == 10


def test_reserve_never_goes_negative(db_session, chain):
    with pytest.raises(InsufficientStockError):
        with transaction(db_session):
            reserve_stock(db_session, chain.supplier.id, chain.product.id, 11)
    db_session.refresh(chain.inventory)
    assert chain.inventory.quantity == 10


def test_failed_transaction_rolls_back_reservation(db_session, chain):
    with pytest.raises(RuntimeError):
        with transaction(db_session):
            reserve_stock(db_session, chain.supplier.id, chain.product.id, 3)
            raise RuntimeError("signing failed")
    db_session.refresh(chain.inventory)
    assert chain.inventory.quantity == 10
