from __future__ import annotations

import unicodedata
from typing import Optional

from ..core.constants import KNOWN_DEPARTMENTS
from ..core.exceptions import InvalidDepartmentError


def canonical_department(value: Optional[str]) -> str:
    """Normalize a department name for exact comparison.

    Uppercase, diacritics stripped, surrounding whitespace trimmed and inner
    runs collapsed: "  Jurídico " -> "JURIDICO". Idempotent; None -> "".
    """
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value.upper())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(unicodedata.normalize("NFC", stripped).split())


def same_department(a: Optional[str], b: Optional[str]) -> bool:
    ca = canonical_department(a)
    return bool(ca) and ca == canonical_department(b)


def require_known_department(value: Optional[str]) -> str:
    dept = canonical_department(value)
    if dept not in KNOWN_DEPARTMENTS:
        raise InvalidDepartmentError("Setor destinatário inválido")
    return dept
