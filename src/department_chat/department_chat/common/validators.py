from __future__ import annotations

from typing import Optional, Sized

from ..core.exceptions import ValidationError


def require_content_or_attachments(content: Optional[str], attachments: Sized, field_name: str) -> str:
    """Text may be empty only when at least one file goes with it."""
    text = (content or "").strip()
    if not text and len(attachments) == 0:
        raise ValidationError(f"{field_name} é obrigatório")
    return text
