from __future__ import annotations

from typing import Optional, Protocol

from .model import Member


class DirectoryAdapter(Protocol):
    """Resolves a user id to name, role and department.

    The chat core never resolves identity itself.
    """

    def get_member(self, user_id: int) -> Optional[Member]:
        raise NotImplementedError
