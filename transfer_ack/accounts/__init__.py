"""Account directory: which provider accounts the poller may query."""

from .directory import AccountDirectory, ProviderAccount, is_pollable_token
from .sync import sync_configured_accounts

__all__ = [
    "AccountDirectory",
    "ProviderAccount",
    "is_pollable_token",
    "sync_configured_accounts",
]
