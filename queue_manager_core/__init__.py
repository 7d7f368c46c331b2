"""Shared security primitives for demo queue managers.

- Session tokens: HMAC-SHA256 signed, timestamped session identifiers
- Rate limiting: in-memory fixed-window limiters (connection, invite)
- Env files: per-session credential files with owner-only permissions
- Reconnection lock: serialises WebSocket reconnection handling
"""

from queue_manager_core.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from queue_manager_core.adapters.rate_limit.factory import (
    create_connection_rate_limiter,
    create_invite_rate_limiter,
    create_rate_limiter,
)
from queue_manager_core.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from queue_manager_core.core.env_file import EnvFileManager, SessionEnvFile, create_session_env_file
from queue_manager_core.core.reconnection_lock import ReconnectionLock
from queue_manager_core.core.session_token import (
    TokenExpiry,
    TokenValidation,
    generate_session_token,
    is_session_token_expired,
    validate_session_token,
)

__all__ = [
    "AbstractRateLimiter",
    "EnvFileManager",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitResult",
    "ReconnectionLock",
    "SessionEnvFile",
    "TokenExpiry",
    "TokenValidation",
    "create_connection_rate_limiter",
    "create_invite_rate_limiter",
    "create_rate_limiter",
    "create_session_env_file",
    "generate_session_token",
    "is_session_token_expired",
    "validate_session_token",
]
