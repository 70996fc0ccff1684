"""
Shared fixtures: an in-memory database per test, RSA keys generated once per
session, and a small supply chain (one supplier, three distributors, one
customer) to run orders through.
"""

from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.models import (
    Base, User, SupplierProfile, DistributorProfile, Warehouse, Product,
    Inventory, Transporter, Role, PartyType
)
from fulfillment.orders import (
    create_order, approve_order, accept_leg, ship_order, confirm_receipt,
    forward_order, ship_forward
)
from signing.keys import generate_key_pair, hash_private_key

API_KEY = "test-api-key-12345"


@pytest.fixture(scope="session")
def server_keys():
    return generate_key_pair()


@pytest.fixture(scope="session")
def supplier_keys():
    return generate_key_pair()


@pytest.fixture(scope="session")
def other_keys():
    return generate_key_pair()


@pytest.fixture(autouse=True)
def environment(monkeypatch, server_keys):
    """Server keypair and service settings as they would come from .env."""
    monkeypatch.setenv("SERVER_PRIVATE_KEY", server_keys["private_key"].replace("\n", "\\n"))
    monkeypatch.setenv("SERVER_PUBLIC_KEY", server_keys["public_key"])
    monkeypatch.setenv("CUSTODY_LEDGER_API_KEY", API_KEY)
    monkeypatch.setenv("FRONTEND_URL", "https://ledger.test")


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(bind=engine)()
    yield session
    session.close()


def _distributor(db, n):
    user = User(email=f"distributor{n}@example.com", name=f"Distributor {n}", role=Role.DISTRIBUTOR)
    db.add(user)
    db.flush()
    profile = DistributorProfile(
        user_id=user.id,
        business_name=f"Hub {n} Logistics",
        contact_number=f"+100000000{n}",
        service_area="North"
    )
    db.add(profile)
    db.flush()
    transporter = Transporter(name=f"Hub {n} Van", phone="+1999", distributor_id=profile.id)
    db.add(transporter)
    db.flush()
    return profile, transporter


@pytest.fixture
def chain(db_session, supplier_keys):
    """
    A supplier with signing keys and 10 units of a 25.00 product, three
    distributors with one transporter each, and a customer.
    """
    db = db_session

    customer = User(email="customer@example.com", name="Casey Customer", role=Role.CUSTOMER)
    supplier_user = User(email="supplier@example.com", name="Sam Supplier", role=Role.SUPPLIER)
    db.add_all([customer, supplier_user])
    db.flush()

    supplier = SupplierProfile(
        user_id=supplier_user.id,
        business_name="Highland Growers",
        contact_number="+15550001",
        public_key=supplier_keys["public_key"],
        private_key_hash=hash_private_key(supplier_keys["private_key"])
    )
    db.add(supplier)
    db.flush()

    warehouse = Warehouse(supplier_id=supplier.id, name="Main Warehouse", address="1 Farm Road")
    product = Product(
        supplier_id=supplier.id,
        name="Washed Arabica",
        category="Coffee",
        batch_no="BATCH-2025-001",
        price=25.0
    )
    db.add_all([warehouse, product])
    db.flush()

    inventory = Inventory(warehouse_id=warehouse.id, product_id=product.id, quantity=10)
    supplier_transporter = Transporter(name="Highland Truck", phone="+15550002", supplier_id=supplier.id)
    db.add_all([inventory, supplier_transporter])
    db.flush()

    d1, t1 = _distributor(db, 1)
    d2, t2 = _distributor(db, 2)
    d3, t3 = _distributor(db, 3)
    db.commit()

    return SimpleNamespace(
        customer=customer,
        supplier_user=supplier_user,
        supplier=supplier,
        private_key=supplier_keys["private_key"],
        warehouse=warehouse,
        product=product,
        inventory=inventory,
        supplier_transporter=supplier_transporter,
        d1=d1, t1=t1,
        d2=d2, t2=t2,
        d3=d3, t3=t3,
    )


class Flow:
    """Drives an order through common custody paths."""

    def __init__(self, db, chain):
        self.db = db
        self.chain = chain

    def place(self, quantity=2, address="12 Harbour Road"):
        c = self.chain
        return create_order(self.db, c.customer.id, c.supplier.id, c.product.id, quantity, address)

    def approve(self, order, distributor=None):
        c = self.chain
        distributor = distributor or c.d1
        return approve_order(
            self.db, order.id, c.supplier.id, distributor.id, c.supplier_transporter.id, c.private_key
        )

    def to_first_hub(self, order):
        """Approve, accept, ship and receive leg #1 at distributor 1."""
        c = self.chain
        leg = self.approve(order)["leg"]
        accept_leg(self.db, leg.id, c.d1.id)
        ship_order(self.db, order.id, c.supplier.id, leg.id)
        confirm_receipt(self.db, leg.id, c.d1.id)
        return leg

    def out_for_delivery(self, order):
        """Carry the order to distributor 1 and ship it on to the customer."""
        c = self.chain
        self.to_first_hub(order)
        leg = forward_order(self.db, order.id, c.d1.id, PartyType.CUSTOMER, c.t1.id)
        ship_forward(self.db, leg.id, c.d1.id)
        return leg


@pytest.fixture
def flow(db_session, chain):
    return Flow(db_session, chain)
