"""
Distributor endpoints: custody legs and transporters.
"""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database.connection import get_session
from database.models import Role
from fulfillment.errors import ForbiddenError
from fulfillment.orders import (
    accept_leg, reject_leg, confirm_receipt, forward_order, ship_forward,
    reassign_distributor_leg, get_leg_by_id,
    create_transporter, list_transporters, delete_transporter
)
from fulfillment.service.auth import CallerIdentity, require_distributor, get_caller
from fulfillment.service.schemas import (
    ReasonRequest, AssignRequest, ForwardOrderRequest, CreateTransporterRequest,
    serialize_leg, serialize_transporter
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["legs"])


@router.get("/legs/{leg_id}")
def read_leg(
    leg_id: int,
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_session)
):
    leg = get_leg_by_id(db, leg_id, viewer_user_id=caller.user_id)
    return {"leg": serialize_leg(leg)}


@router.post("/legs/{leg_id}/accept")
def accept(
    leg_id: int,
    caller: CallerIdentity = Depends(require_distributor),
    db: Session = Depends(get_session)
):
    leg = accept_leg(db, leg_id, caller.distributor_profile_id)
    return {"message": "Leg accepted", "leg": serialize_leg(leg)}


@router.post("/legs/{leg_id}/reject")
def reject(
    leg_id: int,
    request: ReasonRequest,
    caller: CallerIdentity = Depends(require_distributor),
    db: Session = Depends(get_session)
):
    leg = reject_leg(db, leg_id, caller.distributor_profile_id, request.reason)
    return {"message": "Leg rejected", "leg": serialize_leg(leg)}


@router.post("/legs/{leg_id}/confirm-receipt")
def receive(
    leg_id: int,
    caller: CallerIdentity = Depends(require_distributor),
    db: Session = Depends(get_session)
):
    leg = confirm_receipt(db, leg_id, caller.distributor_profile_id)
    return {"message": "Receipt confirmed", "leg": serialize_leg(leg)}


@router.post("/legs/{leg_id}/ship")
def ship(
    leg_id: int,
    caller: CallerIdentity = Depends(require_distributor),
    db: Session = Depends(get_session)
):
    leg = ship_forward(db, leg_id, caller.distributor_profile_id)
    return {"message": "Leg shipped", "leg": serialize_leg(leg)}


@router.post("/legs/{leg_id}/reassign")
def reassign(
    leg_id: int,
    request: AssignRequest,
    caller: CallerIdentity = Depends(require_distributor),
    db: Session = Depends(get_session)
):
    leg = reassign_distributor_leg(
        db, leg_id, caller.distributor_profile_id, request.distributor_id, request.transporter_id
    )
    return {"message": "Leg reassigned", "leg": serialize_leg(leg)}


@router.post("/orders/{order_id}/forward", status_code=201)
def forward(
    order_id: int,
    request: ForwardOrderRequest,
    caller: CallerIdentity = Depends(require_distributor),
    db: Session = Depends(get_session)
):
    leg = forward_order(
        db,
        order_id=order_id,
        distributor_id=caller.distributor_profile_id,
        to_type=request.to_type.upper(),
        transporter_id=request.transporter_id,
        to_distributor_id=request.to_distributor_id
    )
    return {"message": "Order forwarded", "leg": serialize_leg(leg)}


def _owner(caller: CallerIdentity) -> dict:
    if caller.role == Role.SUPPLIER and caller.supplier_profile_id is not None:
        return {"supplier_id": caller.supplier_profile_id}
    if caller.role == Role.DISTRIBUTOR and caller.distributor_profile_id is not None:
        return {"distributor_id": caller.distributor_profile_id}
    raise ForbiddenError("Only suppliers and distributors manage transporters")


@router.get("/transporters")
def read_transporters(
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_session)
):
    transporters = list_transporters(db, **_owner(caller))
    return {"transporters": [serialize_transporter(t) for t in transporters]}


@router.post("/transporters", status_code=201)
def add_transporter(
    request: CreateTransporterRequest,
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_session)
):
    transporter = create_transporter(db, request.name, request.phone, **_owner(caller))
    return {"message": "Transporter created", "transporter": serialize_transporter(transporter)}


@router.delete("/transporters/{transporter_id}")
def remove_transporter(
    transporter_id: int,
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_session)
):
    delete_transporter(db, transporter_id, **_owner(caller))
    return {"message": "Transporter deleted"}
