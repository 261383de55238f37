"""Account record persistence.

The account record identifies which account last signed in so a restarted
server can acquire tokens silently from the persisted token cache instead of
prompting again. It holds no secret material: access tokens, refresh tokens
and client secrets live only in the OS credential store managed by
azure-identity. Disclosure of this file alone does not grant API access.

File format (JSON, mode 0600):
    {"username": ..., "tenant_id": ..., "authority": ...,
     "home_account_id": ..., "client_id": ...}
"""

from __future__ import annotations

__all__ = [
    "AccountRecord",
    "AccountRecordStore",
]

import json
import re
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, field_validator

from m365_copilot_mcp.telemetry.system.system_logger import get_system_logger
from m365_copilot_mcp.utils.file_helpers import atomic_write_text

if TYPE_CHECKING:
    from azure.identity import AuthenticationRecord

# Compact JWS/JWT serialization: base64url JSON header ("eyJ") then two more segments
_BEARER_TOKEN_PATTERN = re.compile(r"eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*")


class AccountRecord(BaseModel):
    """Non-secret identification of the signed-in account.

    Attributes:
        username: User principal name (e.g., "ada@contoso.com").
        tenant_id: Tenant the account authenticated against.
        authority: Authority host (e.g., "login.microsoftonline.com").
        home_account_id: Account identifier used for silent token lookup.
        client_id: Client id the account consented to.
    """

    model_config = ConfigDict(frozen=True)

    username: str
    tenant_id: str
    authority: str
    home_account_id: str = ""
    client_id: str = ""

    @field_validator("*")
    @classmethod
    def _reject_token_material(cls, value: str) -> str:
        if _BEARER_TOKEN_PATTERN.search(value):
            raise ValueError("account record fields must not contain bearer tokens")
        return value

    @classmethod
    def from_authentication_record(cls, record: AuthenticationRecord) -> AccountRecord:
        """Build from the record azure-identity returns after authenticate()."""
        return cls(
            username=record.username,
            tenant_id=record.tenant_id,
            authority=record.authority,
            home_account_id=record.home_account_id,
            client_id=record.client_id,
        )

    def to_authentication_record(self) -> AuthenticationRecord:
        """Convert to the record azure-identity credentials accept for silent auth."""
        from azure.identity import AuthenticationRecord

        return AuthenticationRecord(
            tenant_id=self.tenant_id,
            client_id=self.client_id,
            authority=self.authority,
            home_account_id=self.home_account_id,
            username=self.username,
        )


class AccountRecordStore:
    """Load/save/delete the account record file.

    Args:
        path: Location of the record file. The parent directory is created
            with owner-only permissions on first save.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        """Filesystem path of the record file."""
        return self._path

    def exists(self) -> bool:
        """Check whether a record file is present (it may still be malformed)."""
        return self._path.is_file()

    def load(self) -> AccountRecord | None:
        """Read the record.

        Returns:
            The record, or None if the file is absent, unreadable or malformed.
            Malformed files are logged as a warning and otherwise ignored.
        """
        if not self._path.is_file():
            return None

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return AccountRecord.model_validate(data)
        except (OSError, ValueError) as e:
            # ValueError covers JSONDecodeError, UnicodeDecodeError and pydantic errors
            get_system_logger().warning(
                {
                    "event": "account_record_malformed",
                    "message": "Ignoring unreadable account record, interactive login will be required",
                    "path": str(self._path),
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            return None

    def save(self, record: AccountRecord) -> None:
        """Write the record atomically with 0600 permissions.

        Raises:
            OSError: If the file cannot be written.
        """
        atomic_write_text(self._path, record.model_dump_json(indent=2) + "\n")

    def delete(self) -> bool:
        """Remove the record file.

        Returns:
            True if a file was removed, False if none existed.

        Raises:
            OSError: If the file exists but cannot be removed.
        """
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        return True
