"""
Authentication helpers for the storefront gateway: outbound marketplace
credentials and inbound app-proxy signature checks.
"""

from .credentials import Credential, CredentialIssuer
from .app_proxy import AppProxyVerifier, compute_signature

__all__ = [
    "AppProxyVerifier",
    "Credential",
    "CredentialIssuer",
    "compute_signature",
]
