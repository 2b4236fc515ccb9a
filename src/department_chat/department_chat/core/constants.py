"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

# Canonical names (see common.departments.canonical_department).
KNOWN_DEPARTMENTS = (
    "PROJETOS",
    "CONTRATOS E LICITACOES",
    "SUPRIMENTOS",
    "JURIDICO",
    "DEPARTAMENTO PESSOAL",
    "ENGENHARIA",
    "ADMINISTRATIVO",
    "FINANCEIRO",
)

MAX_ATTACHMENTS = 5
MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024

DEFAULT_LIST_LIMIT = 200
DEFAULT_MIME_TYPE = "application/octet-stream"
