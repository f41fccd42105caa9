"""Service locator for the identity provider."""

from typing import Optional

from polygraf.identity import IdentityProvider, LocalIdentityProvider

_identity_provider: Optional[IdentityProvider] = None


def set_identity_provider(provider: Optional[IdentityProvider]):
    """Set global identity provider instance"""
    global _identity_provider
    _identity_provider = provider


def get_identity_provider() -> IdentityProvider:
    """Get global identity provider instance, creating the local one on first use"""
    global _identity_provider
    if _identity_provider is None:
        _identity_provider = LocalIdentityProvider()
    return _identity_provider
