"""
Request models and response serializers for the HTTP API.

Serializers never include signatures, hashes or keys.
"""

from typing import Optional
from pydantic import BaseModel, Field

from database.models import Order, OrderLeg, TrackingEvent, Transporter


class CreateOrderRequest(BaseModel):
    supplier_id: int
    product_id: int
    quantity: int = Field(..., gt=0)
    delivery_address: str = Field(..., min_length=1)


class ApproveOrderRequest(BaseModel):
    distributor_id: int
    transporter_id: int
    private_key: str = Field(..., min_length=1)


class ReasonRequest(BaseModel):
    reason: Optional[str] = None


class AssignRequest(BaseModel):
    """Target of a reassignment."""
    distributor_id: int
    transporter_id: int


class ForwardOrderRequest(BaseModel):
    to_type: str
    transporter_id: int
    to_distributor_id: Optional[int] = None


class CreateTransporterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None


def _iso(value):
    return value.isoformat() if value else None


def serialize_leg(leg: OrderLeg) -> dict:
    return {
        "id": leg.id,
        "order_id": leg.order_id,
        "leg_number": leg.leg_number,
        "from_type": leg.from_type,
        "from_supplier_id": leg.from_supplier_id,
        "from_distributor_id": leg.from_distributor_id,
        "to_type": leg.to_type,
        "to_distributor_id": leg.to_distributor_id,
        "transporter_id": leg.transporter_id,
        "status": leg.status,
        "created_at": _iso(leg.created_at),
        "updated_at": _iso(leg.updated_at),
    }


def serialize_event(event: TrackingEvent) -> dict:
    return {
        "id": event.id,
        "leg_id": event.leg_id,
        "from_user_id": event.from_user_id,
        "to_user_id": event.to_user_id,
        "status": event.status,
        "description": event.description,
        "timestamp": _iso(event.timestamp),
    }


def serialize_order(order: Order, include_history: bool = False) -> dict:
    data = {
        "id": order.id,
        "customer_id": order.customer_id,
        "supplier_id": order.supplier_id,
        "product_id": order.product_id,
        "quantity": order.quantity,
        "total_amount": order.total_amount,
        "delivery_address": order.delivery_address,
        "status": order.status,
        "is_signed": order.is_signed,
        "signed_at": _iso(order.signed_at),
        "order_date": _iso(order.order_date),
    }
    if include_history:
        data["legs"] = [serialize_leg(leg) for leg in order.legs]
        data["tracking_events"] = [serialize_event(event) for event in order.tracking_events]
    return data


def serialize_transporter(transporter: Transporter) -> dict:
    return {
        "id": transporter.id,
        "name": transporter.name,
        "phone": transporter.phone,
        "supplier_id": transporter.supplier_id,
        "distributor_id": transporter.distributor_id,
    }
