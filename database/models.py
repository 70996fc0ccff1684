"""
SQLAlchemy models for Custody Ledger

Orders move from a supplier's warehouse to a customer through a sequence of
legs, one per custody hop. Every state change appends a TrackingEvent.
"""

from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Float, DateTime, ForeignKey, Text,
    UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role:
    CUSTOMER = "CUSTOMER"
    SUPPLIER = "SUPPLIER"
    DISTRIBUTOR = "DISTRIBUTOR"
    ADMIN = "ADMIN"


class OrderStatus:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PENDING_REASSIGN = "PENDING_REASSIGN"
    IN_PROGRESS = "IN_PROGRESS"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    TERMINAL = (DELIVERED, CANCELLED)
    # Statuses in which stock has been reserved by an approval
    RESERVED = (APPROVED, PENDING_REASSIGN, IN_PROGRESS)


class LegStatus:
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"

    ACTIVE = (PENDING, ACCEPTED, IN_TRANSIT)
    SHIPPED = (IN_TRANSIT, DELIVERED)


class PartyType:
    SUPPLIER = "SUPPLIER"
    DISTRIBUTOR = "DISTRIBUTOR"
    CUSTOMER = "CUSTOMER"


class User(Base):
    """Account known to the identity service; the core only reads it."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(200), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    role = Column(String(20), default=Role.CUSTOMER, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    supplier_profile = relationship("SupplierProfile", back_populates="user", uselist=False)
    distributor_profile = relationship("DistributorProfile", back_populates="user", uselist=False)


class SupplierProfile(Base):
    """Supplier business with its signing identity"""
    __tablename__ = "supplier_profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    business_name = Column(String(200), nullable=False)
    business_address = Column(String(300))
    contact_number = Column(String(30))
    license_number = Column(String(100))

    # The private key itself is never stored, only its salted hash
    public_key = Column(Text)  # SubjectPublicKeyInfo PEM
    private_key_hash = Column(String(200))  # sha256$<salt>$<digest>

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    user = relationship("User", back_populates="supplier_profile")
    warehouse = relationship("Warehouse", back_populates="supplier", uselist=False)
    products = relationship("Product", back_populates="supplier")
    transporters = relationship("Transporter", back_populates="supplier")


class DistributorProfile(Base):
    """Intermediate custodian between supplier and customer"""
    __tablename__ = "distributor_profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    business_name = Column(String(200), nullable=False)
    business_address = Column(String(300))
    contact_number = Column(String(30))
    service_area = Column(String(200))

    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    user = relationship("User", back_populates="distributor_profile")
    transporters = relationship("Transporter", back_populates="distributor")


class Warehouse(Base):
    __tablename__ = "warehouses"

    id = Column(Integer, primary_key=True)
    supplier_id = Column(Integer, ForeignKey("supplier_profiles.id"), unique=True, nullable=False)
    name = Column(String(200), default="Main Warehouse")
    address = Column(String(300))

    # Relationships
    supplier = relationship("SupplierProfile", back_populates="warehouse")
    inventories = relationship("Inventory", back_populates="warehouse")


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    supplier_id = Column(Integer, ForeignKey("supplier_profiles.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    category = Column(String(100))
    batch_no = Column(String(100))
    description = Column(Text)
    price = Column(Float, nullable=False)  # Unit price

    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    supplier = relationship("SupplierProfile", back_populates="products")
    inventories = relationship("Inventory", back_populates="product")


class Inventory(Base):
    """Stock of one product in one warehouse"""
    __tablename__ = "inventories"
    __table_args__ = (
        UniqueConstraint("warehouse_id", "product_id", name="uq_inventory_warehouse_product"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    warehouse = relationship("Warehouse", back_populates="inventories")
    product = relationship("Product", back_populates="inventories")


class Transporter(Base):
    """Carrier owned by exactly one supplier or one distributor"""
    __tablename__ = "transporters"
    __table_args__ = (
        CheckConstraint(
            "(supplier_id IS NULL) <> (distributor_id IS NULL)",
            name="ck_transporter_single_owner",
        ),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    phone = Column(String(30))
    supplier_id = Column(Integer, ForeignKey("supplier_profiles.id"), nullable=True, index=True)
    distributor_id = Column(Integer, ForeignKey("distributor_profiles.id"), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    supplier = relationship("SupplierProfile", back_populates="transporters")
    distributor = relationship("DistributorProfile", back_populates="transporters")
    legs = relationship("OrderLeg", back_populates="transporter")


class Order(Base):
    """One customer purchase from one supplier"""
    __tablename__ = "orders"
    __table_args__ = (
        # Signature fields are written together, exactly once, at approval
        CheckConstraint(
            "(order_hash IS NULL AND supplier_signature IS NULL AND server_signature IS NULL "
            "AND qr_token IS NULL AND signed_at IS NULL) OR "
            "(order_hash IS NOT NULL AND supplier_signature IS NOT NULL AND server_signature IS NOT NULL "
            "AND qr_token IS NOT NULL AND signed_at IS NOT NULL)",
            name="ck_order_signature_fields_together",
        ),
        CheckConstraint("quantity > 0", name="ck_order_quantity_positive"),
    )

    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    supplier_id = Column(Integer, ForeignKey("supplier_profiles.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    total_amount = Column(Float, nullable=False)
    delivery_address = Column(Text, nullable=False)

    status = Column(String(30), default=OrderStatus.PENDING, nullable=False, index=True)

    # Chain-of-custody signature
    order_hash = Column(String(64))
    supplier_signature = Column(Text)
    server_signature = Column(Text)
    qr_token = Column(Text)
    signed_at = Column(DateTime(timezone=True))

    order_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    customer = relationship("User", foreign_keys=[customer_id])
    supplier = relationship("SupplierProfile")
    product = relationship("Product")
    legs = relationship("OrderLeg", back_populates="order", order_by="OrderLeg.leg_number")
    tracking_events = relationship("TrackingEvent", back_populates="order", order_by="TrackingEvent.id")

    @property
    def is_signed(self) -> bool:
        return bool(self.supplier_signature and self.server_signature)


class OrderLeg(Base):
    """One custody hop of an order"""
    __tablename__ = "order_legs"
    __table_args__ = (
        UniqueConstraint("order_id", "leg_number", name="uq_order_leg_number"),
        CheckConstraint("leg_number >= 1", name="ck_order_leg_number_positive"),
        CheckConstraint(
            "(from_type = 'SUPPLIER' AND from_supplier_id IS NOT NULL AND from_distributor_id IS NULL) OR "
            "(from_type = 'DISTRIBUTOR' AND from_distributor_id IS NOT NULL AND from_supplier_id IS NULL)",
            name="ck_order_leg_sender",
        ),
        CheckConstraint(
            "(to_type = 'DISTRIBUTOR' AND to_distributor_id IS NOT NULL) OR "
            "(to_type = 'CUSTOMER' AND to_distributor_id IS NULL)",
            name="ck_order_leg_recipient",
        ),
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    leg_number = Column(Integer, nullable=False)

    from_type = Column(String(20), nullable=False)  # SUPPLIER, DISTRIBUTOR
    from_supplier_id = Column(Integer, ForeignKey("supplier_profiles.id"), nullable=True, index=True)
    from_distributor_id = Column(Integer, ForeignKey("distributor_profiles.id"), nullable=True, index=True)
    to_type = Column(String(20), nullable=False)  # DISTRIBUTOR, CUSTOMER
    to_distributor_id = Column(Integer, ForeignKey("distributor_profiles.id"), nullable=True, index=True)
    # Cleared when a transporter with only finished legs is deleted
    transporter_id = Column(Integer, ForeignKey("transporters.id", ondelete="SET NULL"), nullable=True, index=True)

    status = Column(String(20), default=LegStatus.PENDING, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    order = relationship("Order", back_populates="legs")
    transporter = relationship("Transporter", back_populates="legs")
    from_supplier = relationship("SupplierProfile", foreign_keys=[from_supplier_id])
    from_distributor = relationship("DistributorProfile", foreign_keys=[from_distributor_id])
    to_distributor = relationship("DistributorProfile", foreign_keys=[to_distributor_id])

    @property
    def sender_user_id(self):
        if self.from_type == PartyType.SUPPLIER:
            return self.from_supplier.user_id if self.from_supplier else None
        return self.from_distributor.user_id if self.from_distributor else None


class TrackingEvent(Base):
    """Append-only custody history; never used to derive state"""
    __tablename__ = "tracking_events"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    leg_id = Column(Integer, ForeignKey("order_legs.id"), nullable=True, index=True)
    from_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    to_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    status = Column(String(30), nullable=False, index=True)
    description = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    # Relationships
    order = relationship("Order", back_populates="tracking_events")
    leg = relationship("OrderLeg")
