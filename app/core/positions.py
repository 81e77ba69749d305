# app/core/positions.py
"""
Static job-title hierarchy used to decide who may create quizzes and who may
assign them to whom. Lower level means higher rank.

The table is organization policy shared by every company on the deployment;
it is not tenant data.
"""
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional

UNKNOWN_POSITION_LEVEL = 999


@dataclass(frozen=True)
class Position:
    level: int
    label: str
    can_create_quiz: bool
    can_assign: bool


POSITION_HIERARCHY: Mapping[str, Position] = MappingProxyType({
    "이사": Position(level=1, label="이사", can_create_quiz=True, can_assign=True),
    "본부장": Position(level=2, label="본부장", can_create_quiz=True, can_assign=True),
    "부장": Position(level=3, label="부장", can_create_quiz=True, can_assign=True),
    "차장": Position(level=4, label="차장", can_create_quiz=True, can_assign=True),
    "과장": Position(level=5, label="과장", can_create_quiz=True, can_assign=True),
    "팀장": Position(level=6, label="팀장", can_create_quiz=True, can_assign=True),
    "대리": Position(level=7, label="대리", can_create_quiz=False, can_assign=False),
    "사원": Position(level=8, label="사원", can_create_quiz=False, can_assign=False),
    "인턴": Position(level=9, label="인턴", can_create_quiz=False, can_assign=False),
})

ASSIGNMENT_ERROR_MESSAGES = MappingProxyType({
    "NO_PERMISSION": "현재 직급에서는 선택할 수 없는 멤버입니다.",
    "NO_ASSIGN_AUTHORITY": "퀴즈를 할당할 권한이 없습니다.",
    "NO_CREATE_AUTHORITY": "퀴즈를 생성할 권한이 없습니다.",
})


def get_position(job_title: Optional[str]) -> Optional[Position]:
    if not job_title:
        return None
    return POSITION_HIERARCHY.get(job_title)


def get_position_level(job_title: Optional[str]) -> int:
    """Rank of a job title; missing or unknown titles rank lowest (999)."""
    position = get_position(job_title)
    return position.level if position else UNKNOWN_POSITION_LEVEL


def can_assign_to_member(assigner_title: Optional[str], target_title: Optional[str]) -> bool:
    """True only when the target ranks strictly below the assigner."""
    return get_position_level(target_title) > get_position_level(assigner_title)


def _job_title_of(member: Any) -> Optional[str]:
    if isinstance(member, Mapping):
        return member.get("job_title")
    return getattr(member, "job_title", None)


def filter_assignable_members(assigner_title: Optional[str], members: Iterable[Any]) -> List[Any]:
    """
    Keeps the members the assigner may assign to. Members may be mappings or
    objects exposing ``job_title``.
    """
    return [m for m in members if can_assign_to_member(assigner_title, _job_title_of(m))]


def can_create_quiz(job_title: Optional[str]) -> bool:
    position = get_position(job_title)
    return position.can_create_quiz if position else False


def can_assign(job_title: Optional[str]) -> bool:
    position = get_position(job_title)
    return position.can_assign if position else False


def get_position_list() -> List[Position]:
    """All positions ordered from highest rank to lowest."""
    return sorted(POSITION_HIERARCHY.values(), key=lambda p: p.level)
