"""
guestpass.core - 与具体业务表无关的基础设施（状态机定义）
"""
from guestpass.core.state_machine import (
    StateTransition,
    StateMachine,
    StateMachineEngine,
    linear_transitions,
    state_machine_engine,
)

__all__ = [
    "StateTransition",
    "StateMachine",
    "StateMachineEngine",
    "linear_transitions",
    "state_machine_engine",
]
