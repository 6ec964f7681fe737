"""
guestpass/core/state_machine.py

状态机定义 - 声明式的状态与转换表

实体状态持久化在数据库中，状态机本身不持有"当前状态"，
只负责回答"from -> to 是否合法"，由服务层在条件更新前调用。
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Union
import logging

logger = logging.getLogger(__name__)

StateLike = Union[str, Enum]


def _state_value(state: StateLike) -> str:
    return state.value if isinstance(state, Enum) else str(state)


@dataclass(frozen=True)
class StateTransition:
    """
    状态转换定义

    Attributes:
        from_state: 源状态
        to_state: 目标状态
        trigger: 触发动作（仅用于日志与文档）
    """

    from_state: str
    to_state: str
    trigger: str = ""


@dataclass
class StateMachine:
    """
    状态机定义

    Example:
        >>> sm = StateMachine(
        ...     entity="Order",
        ...     states=["pending", "preparing"],
        ...     transitions=[StateTransition("pending", "preparing", "start")],
        ...     initial_state="pending",
        ... )
        >>> sm.is_valid_transition("pending", "preparing")
        True
    """

    entity: str
    states: List[str]
    transitions: List[StateTransition]
    initial_state: str
    final_states: Set[str] = field(default_factory=set)
    name: str = ""

    def __post_init__(self):
        if not self.name:
            self.name = f"{self.entity}_lifecycle"
        known = set(self.states)
        for t in self.transitions:
            if t.from_state not in known or t.to_state not in known:
                raise ValueError(
                    f"{self.name}: transition {t.from_state} -> {t.to_state} uses an unknown state"
                )
            if t.from_state in self.final_states:
                raise ValueError(f"{self.name}: final state {t.from_state} cannot have outgoing transitions")
        self._edges: Dict[str, FrozenSet[str]] = {
            s: frozenset(t.to_state for t in self.transitions if t.from_state == s)
            for s in self.states
        }

    def has_state(self, state: StateLike) -> bool:
        return _state_value(state) in self._edges

    def get_valid_targets(self, current_state: StateLike) -> List[str]:
        """获取当前状态可到达的目标状态"""
        return sorted(self._edges.get(_state_value(current_state), frozenset()))

    def is_valid_transition(self, from_state: StateLike, to_state: StateLike) -> bool:
        """检查转移是否有效"""
        return _state_value(to_state) in self._edges.get(_state_value(from_state), frozenset())

    def is_final(self, state: StateLike) -> bool:
        """是否为终态（无出边）"""
        return _state_value(state) in self.final_states

    def trigger_for(self, from_state: StateLike, to_state: StateLike) -> Optional[str]:
        src, dst = _state_value(from_state), _state_value(to_state)
        for t in self.transitions:
            if t.from_state == src and t.to_state == dst:
                return t.trigger
        return None


def linear_transitions(states: Iterable[StateLike], trigger_prefix: str = "advance") -> List[StateTransition]:
    """按顺序构建线性转换链 a -> b -> c"""
    values = [_state_value(s) for s in states]
    return [
        StateTransition(src, dst, f"{trigger_prefix}_{dst}")
        for src, dst in zip(values, values[1:])
    ]


class StateMachineEngine:
    """
    状态机注册表 - 按实体类型管理状态机定义

    Example:
        >>> engine = StateMachineEngine()
        >>> engine.register(room_state_machine)
        >>> engine.get("Room").is_valid_transition("available", "reserved")
    """

    def __init__(self):
        self._machines: Dict[str, StateMachine] = {}

    def register(self, machine: StateMachine) -> None:
        """注册状态机"""
        self._machines[machine.entity] = machine
        logger.info(f"StateMachine registered for {machine.entity}")

    def get(self, entity_type: str) -> Optional[StateMachine]:
        """获取状态机"""
        return self._machines.get(entity_type)

    def get_all(self) -> Dict[str, StateMachine]:
        """获取所有状态机"""
        return self._machines.copy()

    def clear(self) -> None:
        """清空所有状态机（用于测试）"""
        self._machines.clear()


# 全局状态机注册表
state_machine_engine = StateMachineEngine()


__all__ = [
    "StateTransition",
    "StateMachine",
    "StateMachineEngine",
    "linear_transitions",
    "state_machine_engine",
]
