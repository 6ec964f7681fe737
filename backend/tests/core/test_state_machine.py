"""
状态机定义单元测试
"""
import pytest

from guestpass.core.state_machine import (
    StateMachine, StateTransition, StateMachineEngine, linear_transitions, state_machine_engine
)
from guestpass.models.ontology import RoomStatus, OrderStatus, ServiceRequestStatus
from guestpass.services.room_service import ROOM_STATE_MACHINE
from guestpass.services.ledger_service import ORDER_STATE_MACHINE, SERVICE_REQUEST_STATE_MACHINE


class TestStateMachine:
    """StateMachine 基础行为"""

    @pytest.fixture
    def machine(self):
        return StateMachine(
            entity="Ticket",
            states=["open", "working", "closed"],
            transitions=linear_transitions(["open", "working", "closed"]),
            initial_state="open",
            final_states={"closed"},
        )

    def test_default_name(self, machine):
        assert machine.name == "Ticket_lifecycle"

    def test_valid_and_invalid_transitions(self, machine):
        assert machine.is_valid_transition("open", "working")
        assert machine.is_valid_transition("working", "closed")
        assert not machine.is_valid_transition("open", "closed")
        assert not machine.is_valid_transition("working", "open")

    def test_unknown_states_are_invalid(self, machine):
        assert not machine.has_state("archived")
        assert not machine.is_valid_transition("archived", "open")
        assert machine.get_valid_targets("archived") == []

    def test_linear_triggers(self, machine):
        assert machine.trigger_for("open", "working") == "advance_working"
        assert machine.trigger_for("open", "closed") is None

    def test_final_state(self, machine):
        assert machine.is_final("closed")
        assert not machine.is_final("open")
        assert machine.get_valid_targets("closed") == []

    def test_rejects_transition_with_unknown_state(self):
        with pytest.raises(ValueError, match="unknown state"):
            StateMachine(
                entity="Bad",
                states=["a"],
                transitions=[StateTransition("a", "b")],
                initial_state="a",
            )

    def test_rejects_outgoing_edge_from_final_state(self):
        with pytest.raises(ValueError, match="final state"):
            StateMachine(
                entity="Bad",
                states=["a", "b"],
                transitions=[StateTransition("b", "a")],
                initial_state="a",
                final_states={"b"},
            )

    def test_accepts_enum_members(self):
        assert ROOM_STATE_MACHINE.is_valid_transition(RoomStatus.AVAILABLE, RoomStatus.RESERVED)
        assert ROOM_STATE_MACHINE.is_valid_transition("available", RoomStatus.RESERVED)


class TestDomainMachines:
    """房间/订单/服务请求状态机的转换表"""

    def test_room_cannot_skip_to_occupied(self):
        assert not ROOM_STATE_MACHINE.is_valid_transition(RoomStatus.AVAILABLE, RoomStatus.OCCUPIED)

    def test_room_maintenance_only_from_available(self):
        assert ROOM_STATE_MACHINE.is_valid_transition(RoomStatus.AVAILABLE, RoomStatus.MAINTENANCE)
        assert ROOM_STATE_MACHINE.is_valid_transition(RoomStatus.MAINTENANCE, RoomStatus.AVAILABLE)
        assert not ROOM_STATE_MACHINE.is_valid_transition(RoomStatus.OCCUPIED, RoomStatus.MAINTENANCE)
        assert not ROOM_STATE_MACHINE.is_valid_transition(RoomStatus.RESERVED, RoomStatus.MAINTENANCE)

    def test_order_cancel_from_every_open_state(self):
        for status in (OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY):
            assert ORDER_STATE_MACHINE.is_valid_transition(status, OrderStatus.CANCELLED)

    def test_order_terminal_states(self):
        for status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
            assert ORDER_STATE_MACHINE.is_final(status)
            assert ORDER_STATE_MACHINE.get_valid_targets(status) == []

    def test_service_request_is_linear(self):
        sm = SERVICE_REQUEST_STATE_MACHINE
        assert sm.get_valid_targets(ServiceRequestStatus.PENDING) == ["in-progress"]
        assert sm.get_valid_targets(ServiceRequestStatus.IN_PROGRESS) == ["completed"]
        assert not sm.is_valid_transition(ServiceRequestStatus.PENDING, ServiceRequestStatus.COMPLETED)
        assert not sm.is_valid_transition(ServiceRequestStatus.COMPLETED, ServiceRequestStatus.PENDING)


class TestStateMachineEngine:

    def test_register_and_get(self):
        engine = StateMachineEngine()
        engine.register(ORDER_STATE_MACHINE)
        assert engine.get("Order") is ORDER_STATE_MACHINE
        assert engine.get("Unknown") is None
        assert list(engine.get_all()) == ["Order"]
        engine.clear()
        assert engine.get_all() == {}

    def test_global_engine_has_domain_machines(self):
        registered = state_machine_engine.get_all()
        assert {"Room", "Order", "ServiceRequest"} <= set(registered)
