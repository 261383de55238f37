"""Application-wide constants for m365-copilot-mcp.

Constants that define application behavior.
For settings that vary per deployment, see config.py.
"""

import os

from platformdirs import user_config_dir

__all__ = [
    # Application identity
    "APP_NAME",
    "SERVER_NAME",
    # Protected directories
    "PROTECTED_CONFIG_DIR",
    "ACCOUNT_RECORD_FILENAME",
    # Identity provider
    "DEFAULT_CLIENT_ID",
    "DEFAULT_TENANT_ID",
    "REQUIRED_SCOPES",
    "TOKEN_RENEWAL_SKEW_SECONDS",
    "TOKEN_CACHE_NAME",
    "DEFAULT_INTERACTIVE_TIMEOUT_SECONDS",
    "HEADLESS_ERROR_INDICATORS",
    # Secure secret store layout
    "IDENTITY_SERVICE_DIR",
    "IDENTITY_SERVICE_NAME",
    "IDENTITY_SERVICE_ACCOUNT",
    # Graph API
    "GRAPH_BASE_URL",
    "GRAPH_TIMEOUT_SECONDS",
    "RETRIEVAL_DATA_SOURCES",
    "RETRIEVAL_RESOURCE_METADATA",
    "RETRIEVAL_MAX_RESULTS",
    "MAX_QUERY_LENGTH",
]

# =============================================================================
# Application Identity
# =============================================================================

APP_NAME = "m365-copilot-mcp"

# Name advertised to MCP clients
SERVER_NAME = "m365-copilot-mcp"

# =============================================================================
# Protected Directories
# =============================================================================

# User-private config directory holding the account record.
# realpath resolves symlinks so the path cannot be redirected.
PROTECTED_CONFIG_DIR = os.path.realpath(user_config_dir(APP_NAME))

ACCOUNT_RECORD_FILENAME = "account_record.json"

# =============================================================================
# Identity Provider (Microsoft Entra ID)
# =============================================================================

# Pre-registered multi-tenant public client
DEFAULT_CLIENT_ID = "f44ab954-9e38-4330-aa49-e93d73ab0ea6"
DEFAULT_TENANT_ID = "common"

# Delegated permissions required by the Copilot retrieval, search and chat APIs.
# Requested together as one grant.
REQUIRED_SCOPES: tuple[str, ...] = (
    "https://graph.microsoft.com/Sites.Read.All",
    "https://graph.microsoft.com/Files.Read.All",
    "https://graph.microsoft.com/Mail.Read",
    "https://graph.microsoft.com/People.Read.All",
    "https://graph.microsoft.com/OnlineMeetingTranscript.Read.All",
    "https://graph.microsoft.com/Chat.Read",
    "https://graph.microsoft.com/ChannelMessage.Read.All",
    "https://graph.microsoft.com/ExternalItem.Read.All",
)

# Cached tokens are treated as expired this long before their real expiry
TOKEN_RENEWAL_SKEW_SECONDS = 5 * 60

# Name of the persisted token cache inside the OS credential store
TOKEN_CACHE_NAME = "m365-copilot-mcp-cache"

# Upper bound on how long an interactive browser login may wait for the user
DEFAULT_INTERACTIVE_TIMEOUT_SECONDS = 300

# Lowercase substrings identifying browser-launch failures caused by a
# missing graphical environment. Consulted only when the error is not a
# typed CredentialUnavailableError.
HEADLESS_ERROR_INDICATORS: tuple[str, ...] = (
    "failed to open a browser",
    "no browser",
    "display",
    "headless",
    "couldn't start an http server",
)

# =============================================================================
# Secure Secret Store Layout
# =============================================================================

# Location and keychain identifiers azure-identity uses for persisted caches
IDENTITY_SERVICE_DIR = ".IdentityService"
IDENTITY_SERVICE_NAME = "Microsoft.Developer.IdentityService"
IDENTITY_SERVICE_ACCOUNT = "MSALCache"

# =============================================================================
# Graph API
# =============================================================================

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_TIMEOUT_SECONDS = 60.0

RETRIEVAL_DATA_SOURCES: tuple[str, ...] = ("sharePoint", "oneDriveBusiness")
RETRIEVAL_RESOURCE_METADATA: tuple[str, ...] = ("title", "author")
RETRIEVAL_MAX_RESULTS = 5

# Copilot APIs reject longer query strings
MAX_QUERY_LENGTH = 1500
