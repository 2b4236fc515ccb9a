from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class Member:
    """A user as seen by the chat core: identity, role and department.

    `department` is the raw directory value; callers canonicalize it before
    comparing (common.departments).
    """

    user_id: int
    full_name: str
    role: Role
    department: Optional[str]
    is_active: bool = True
