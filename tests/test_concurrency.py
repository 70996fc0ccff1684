"""
Concurrent approvals against a file-backed database, where each session gets
its own connection.
"""

import threading

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from database.models import Base, Inventory, OrderLeg, OrderStatus
from fulfillment.errors import InvalidStateError, TransactionConflictError, TransactionTimeoutError
from fulfillment.orders import approve_order


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'custody_ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


def test_duplicate_approvals_reserve_stock_once(engine, db_session, flow, chain):
    order = flow.place(quantity=2)
    order_id = order.id
    args = (chain.supplier.id, chain.d1.id, chain.supplier_transporter.id, chain.private_key)
    make_session = sessionmaker(bind=engine)
    start = threading.Barrier(2)
    outcomes = []

    def approve():
        db = make_session()
        try:
            start.wait()
            approve_order(db, order_id, *args)
            outcomes.append("approved")
        except (InvalidStateError, TransactionConflictError, TransactionTimeoutError) as e:
            outcomes.append(type(e).__name__)
        finally:
            db.close()

    threads = [threading.Thread(target=approve) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert outcomes.count("approved") == 1
    assert len(outcomes) == 2

    db_session.expire_all()
    assert db_session.query(Inventory).filter(Inventory.id == chain.inventory.id).one().quantity == 8
    assert db_session.query(OrderLeg).filter(OrderLeg.order_id == order_id).count() == 1
    db_session.refresh(order)
    assert order.status == OrderStatus.APPROVED
