"""Application-wide constants for the quinielas backend."""

from __future__ import annotations

BRAND_NAME = "Quinielas"

API_TITLE = f"{BRAND_NAME} API"
API_VERSION = "1.0.0"
API_DESCRIPTION = "Pool settings resolution and registration access control."

# Invite codes avoid characters that are easy to confuse when read aloud
INVITE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

# Email invitation tokens: 32 random bytes, hex encoded
INVITATION_TOKEN_BYTES = 32

# Batch creation limits
MAX_CODES_PER_BATCH = 5000
MAX_USES_PER_CODE = 10000
MAX_BULK_INVITATIONS = 1000

# Query limits
DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 1000

# Principal headers set by the upstream host-resolution/auth layer
USER_ID_HEADER = "X-User-Id"
TENANT_ID_HEADER = "X-Tenant-Id"
USER_ROLE_HEADER = "X-User-Role"

CSV_EXPORT_HEADERS = ("Code", "Status", "Used Count", "Uses Per Code", "Expires At")
