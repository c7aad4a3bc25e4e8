"""
Subdomain-based tenant resolution for the request path.

A reverse proxy usually forwards the tenant subdomain in an
``X-Subdomain`` header; otherwise it is the first label of a host name
that has more than two labels (``acme.example.com`` -> ``acme``).
"""

from __future__ import annotations

import logging

from tenantstore.directory.models import RESERVED_SUBDOMAINS, Tenant
from tenantstore.directory.repository import TenantDirectory
from tenantstore.observability import Tracer, create_tracer
from tenantstore.observability.attributes import ATTR_SUBDOMAIN, ATTR_TENANT_ID

logger = logging.getLogger(__name__)

SUBDOMAIN_HEADER = "x-subdomain"


def extract_subdomain(host: str | None = None, header: str | None = None) -> str | None:
    """
    Pick the tenant subdomain out of a request.

    Args:
        host: Value of the Host header, optionally with a port
        header: Value of the X-Subdomain header, if the proxy set one

    Returns:
        Lower-case subdomain, or None when there is none or it is reserved

    Example:
        >>> extract_subdomain(host="acme.example.com:8080")
        'acme'
        >>> extract_subdomain(host="www.example.com") is None
        True
    """
    subdomain = header.strip() if header else None
    if not subdomain and host:
        labels = host.split(":", 1)[0].strip().split(".")
        if len(labels) > 2:
            subdomain = labels[0]

    if not subdomain:
        return None
    subdomain = subdomain.lower()
    if subdomain in RESERVED_SUBDOMAINS:
        return None
    return subdomain


class TenantResolver:
    """
    Resolves an incoming request to a Tenant.

    Example:
        >>> resolver = TenantResolver(directory)
        >>> tenant = await resolver.resolve(host=request.headers.get("host"))
        >>> if tenant is not None:
        ...     handle = await registry.acquire(tenant)
    """

    def __init__(
        self,
        directory: TenantDirectory,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._directory = directory
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def resolve(self, host: str | None = None, header: str | None = None) -> Tenant | None:
        """
        Resolve a request to its tenant.

        Returns:
            The tenant, or None when the request carries no tenant subdomain

        Raises:
            TenantNotFoundError: If a subdomain is present but unregistered
        """
        subdomain = extract_subdomain(host=host, header=header)
        if subdomain is None:
            return None

        with self._tracer.span(
            "tenantstore.resolver.resolve",
            {ATTR_SUBDOMAIN: subdomain},
        ) as span:
            tenant = await self._directory.get_by_subdomain(subdomain)
            if span:
                span.set_attribute(ATTR_TENANT_ID, tenant.id)
            logger.debug("Resolved subdomain %s to tenant %s", subdomain, tenant.id)
            return tenant

    async def resolve_headers(self, headers: dict[str, str]) -> Tenant | None:
        """Resolve from a header mapping (keys compared case-insensitively)."""
        lowered = {key.lower(): value for key, value in headers.items()}
        return await self.resolve(host=lowered.get("host"), header=lowered.get(SUBDOMAIN_HEADER))


__all__ = [
    "SUBDOMAIN_HEADER",
    "extract_subdomain",
    "TenantResolver",
]
