"""
Tests for distributor custody operations on legs.
"""

import pytest

from database.models import OrderLeg, OrderStatus, LegStatus, PartyType
from fulfillment.errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from fulfillment.orders import (
    accept_leg, reject_leg, confirm_receipt, forward_order, ship_forward,
    reassign_distributor_leg, get_leg_by_id, ship_order, cancel_order
)


class TestAcceptReject:

    def test_recipient_accepts(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.approve(order)["leg"]
        leg = accept_leg(db_session, leg.id, chain.d1.id)
        assert leg.status == LegStatus.ACCEPTED

    def test_only_recipient_can_accept(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.approve(order)["leg"]
        with pytest.raises(ForbiddenError):
            accept_leg(db_session, leg.id, chain.d2.id)

    def test_cannot_accept_twice(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.approve(order)["leg"]
        accept_leg(db_session, leg.id, chain.d1.id)
        with pytest.raises(InvalidStateError):
            accept_leg(db_session, leg.id, chain.d1.id)

    def test_rejecting_supplier_leg_sets_pending_reassign(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.approve(order)["leg"]
        leg = reject_leg(db_session, leg.id, chain.d1.id, "Warehouse full")
        db_session.refresh(order)
        assert leg.status == LegStatus.REJECTED
        assert order.status == OrderStatus.PENDING_REASSIGN

    def test_cannot_reject_accepted_leg(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.approve(order)["leg"]
        accept_leg(db_session, leg.id, chain.d1.id)
        with pytest.raises(InvalidStateError):
            reject_leg(db_session, leg.id, chain.d1.id)

    def test_cancelled_order_legs_are_frozen(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.approve(order)["leg"]
        cancel_order(db_session, order.id, chain.customer.id)
        with pytest.raises(InvalidStateError):
            accept_leg(db_session, leg.id, chain.d1.id)


class TestReceipt:

    def test_confirm_receipt_after_shipping(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.to_first_hub(order)
        db_session.refresh(leg)
        assert leg.status == LegStatus.DELIVERED

    def test_cannot_confirm_receipt_before_shipping(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.approve(order)["leg"]
        accept_leg(db_session, leg.id, chain.d1.id)
        with pytest.raises(InvalidStateError):
            confirm_receipt(db_session, leg.id, chain.d1.id)


class TestForward:

    def test_forward_to_next_distributor(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        leg = forward_order(db_session, order.id, chain.d1.id, PartyType.DISTRIBUTOR, chain.t1.id, chain.d2.id)
        assert leg.leg_number == 2
        assert leg.from_distributor_id == chain.d1.id
        assert leg.to_distributor_id == chain.d2.id
        assert leg.status == LegStatus.PENDING

    def test_forward_requires_receipt(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.approve(order)["leg"]
        accept_leg(db_session, leg.id, chain.d1.id)
        ship_order(db_session, order.id, chain.supplier.id, leg.id)
        with pytest.raises(InvalidStateError):
            forward_order(db_session, order.id, chain.d1.id, PartyType.CUSTOMER, chain.t1.id)

    def test_only_holder_can_forward(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        with pytest.raises(ForbiddenError):
            forward_order(db_session, order.id, chain.d2.id, PartyType.CUSTOMER, chain.t2.id)

    def test_forward_is_not_repeatable(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        forward_order(db_session, order.id, chain.d1.id, PartyType.CUSTOMER, chain.t1.id)
        with pytest.raises((ForbiddenError, InvalidStateError)):
            forward_order(db_session, order.id, chain.d1.id, PartyType.CUSTOMER, chain.t1.id)
        assert db_session.query(OrderLeg).filter(OrderLeg.order_id == order.id).count() == 2

    def test_cannot_forward_to_self(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        with pytest.raises(ValidationError):
            forward_order(db_session, order.id, chain.d1.id, PartyType.DISTRIBUTOR, chain.t1.id, chain.d1.id)

    def test_distributor_target_required(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        with pytest.raises(ValidationError):
            forward_order(db_session, order.id, chain.d1.id, PartyType.DISTRIBUTOR, chain.t1.id)

    def test_unknown_target(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        with pytest.raises(NotFoundError):
            forward_order(db_session, order.id, chain.d1.id, PartyType.DISTRIBUTOR, chain.t1.id, 9999)

    def test_invalid_to_type(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        with pytest.raises(ValidationError):
            forward_order(db_session, order.id, chain.d1.id, "SUPPLIER", chain.t1.id)

    def test_transporter_must_belong_to_forwarder(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        with pytest.raises(ForbiddenError):
            forward_order(db_session, order.id, chain.d1.id, PartyType.CUSTOMER, chain.t2.id)


class TestShipForward:

    def test_customer_leg_ships_from_pending(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.out_for_delivery(order)
        assert leg.status == LegStatus.IN_TRANSIT

    def test_distributor_leg_needs_acceptance(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        leg = forward_order(db_session, order.id, chain.d1.id, PartyType.DISTRIBUTOR, chain.t1.id, chain.d2.id)
        with pytest.raises(InvalidStateError):
            ship_forward(db_session, leg.id, chain.d1.id)

        accept_leg(db_session, leg.id, chain.d2.id)
        leg = ship_forward(db_session, leg.id, chain.d1.id)
        assert leg.status == LegStatus.IN_TRANSIT

    def test_only_sender_can_ship(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        leg = forward_order(db_session, order.id, chain.d1.id, PartyType.CUSTOMER, chain.t1.id)
        with pytest.raises(ForbiddenError):
            ship_forward(db_session, leg.id, chain.d2.id)

    def test_supplier_leg_cannot_ship_through_distributor_path(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.approve(order)["leg"]
        accept_leg(db_session, leg.id, chain.d1.id)
        with pytest.raises(ForbiddenError):
            ship_forward(db_session, leg.id, chain.d1.id)


class TestDistributorReassign:

    def _rejected_hop(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        leg = forward_order(db_session, order.id, chain.d1.id, PartyType.DISTRIBUTOR, chain.t1.id, chain.d2.id)
        reject_leg(db_session, leg.id, chain.d2.id)
        return order, leg

    def test_rejecting_distributor_leg_keeps_order_status(self, db_session, flow, chain):
        order, leg = self._rejected_hop(db_session, flow, chain)
        db_session.refresh(order)
        assert order.status == OrderStatus.IN_PROGRESS

    def test_reassign_creates_next_leg(self, db_session, flow, chain):
        order, leg = self._rejected_hop(db_session, flow, chain)
        new_leg = reassign_distributor_leg(db_session, leg.id, chain.d1.id, chain.d3.id, chain.t1.id)
        assert new_leg.leg_number == 3
        assert new_leg.to_distributor_id == chain.d3.id
        assert new_leg.from_distributor_id == chain.d1.id
        assert new_leg.status == LegStatus.PENDING

    def test_cannot_reassign_twice(self, db_session, flow, chain):
        order, leg = self._rejected_hop(db_session, flow, chain)
        reassign_distributor_leg(db_session, leg.id, chain.d1.id, chain.d3.id, chain.t1.id)
        with pytest.raises(InvalidStateError):
            reassign_distributor_leg(db_session, leg.id, chain.d1.id, chain.d3.id, chain.t1.id)

    def test_cannot_reassign_to_rejecter(self, db_session, flow, chain):
        order, leg = self._rejected_hop(db_session, flow, chain)
        with pytest.raises(InvalidStateError):
            reassign_distributor_leg(db_session, leg.id, chain.d1.id, chain.d2.id, chain.t1.id)

    def test_cannot_reassign_to_self(self, db_session, flow, chain):
        order, leg = self._rejected_hop(db_session, flow, chain)
        with pytest.raises(ValidationError):
            reassign_distributor_leg(db_session, leg.id, chain.d1.id, chain.d1.id, chain.t1.id)

    def test_only_sender_can_reassign(self, db_session, flow, chain):
        order, leg = self._rejected_hop(db_session, flow, chain)
        with pytest.raises(ForbiddenError):
            reassign_distributor_leg(db_session, leg.id, chain.d3.id, chain.d2.id, chain.t3.id)

    def test_leg_must_be_rejected(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        leg = forward_order(db_session, order.id, chain.d1.id, PartyType.DISTRIBUTOR, chain.t1.id, chain.d2.id)
        with pytest.raises(InvalidStateError):
            reassign_distributor_leg(db_session, leg.id, chain.d1.id, chain.d3.id, chain.t1.id)


class TestLegNumbers:

    def test_leg_numbers_are_contiguous_through_rejections(self, db_session, flow, chain):
        order = flow.place()
        flow.to_first_hub(order)
        leg2 = forward_order(db_session, order.id, chain.d1.id, PartyType.DISTRIBUTOR, chain.t1.id, chain.d2.id)
        reject_leg(db_session, leg2.id, chain.d2.id)
        leg3 = reassign_distributor_leg(db_session, leg2.id, chain.d1.id, chain.d3.id, chain.t1.id)
        accept_leg(db_session, leg3.id, chain.d3.id)
        ship_forward(db_session, leg3.id, chain.d1.id)
        confirm_receipt(db_session, leg3.id, chain.d3.id)
        leg4 = forward_order(db_session, order.id, chain.d3.id, PartyType.CUSTOMER, chain.t3.id)

        numbers = [
            leg.leg_number for leg in
            db_session.query(OrderLeg).filter(OrderLeg.order_id == order.id).order_by(OrderLeg.leg_number)
        ]
        assert numbers == [1, 2, 3, 4]
        assert leg4.to_type == PartyType.CUSTOMER


class TestGetLeg:

    def test_sender_and_recipient_can_view(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.approve(order)["leg"]
        assert get_leg_by_id(db_session, leg.id, viewer_user_id=chain.supplier_user.id).id == leg.id
        assert get_leg_by_id(db_session, leg.id, viewer_user_id=chain.d1.user_id).id == leg.id

    def test_others_cannot_view(self, db_session, flow, chain):
        order = flow.place()
        leg = flow.approve(order)["leg"]
        with pytest.raises(ForbiddenError):
            get_leg_by_id(db_session, leg.id, viewer_user_id=chain.d2.user_id)
