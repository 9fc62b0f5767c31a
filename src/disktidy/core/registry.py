"""Scan domain registry."""

from __future__ import annotations

import logging
from typing import Iterator

from disktidy.models.domain import ScanDomain

log = logging.getLogger(__name__)


class UnknownDomainError(LookupError):
    """Raised by DomainRegistry.require() for an id nobody registered."""

    def __init__(self, domain_id: str, available: list[str]) -> None:
        self.domain_id = domain_id
        self.available = available
        super().__init__(f"Unknown scan domain '{domain_id}' (available: {', '.join(available) or 'none'})")


class DomainRegistry:
    """Known scan domains, keyed by id.

    Each domain owns its two event channels; a domain whose progress or
    completion channel is already claimed by another one is rejected,
    since both controllers would receive each other's events.
    """

    def __init__(self) -> None:
        self._domains: dict[str, ScanDomain] = {}
        self._channels: dict[str, str] = {}  # event name -> domain id

    def register(self, domain: ScanDomain) -> bool:
        """Register a domain instance. Returns False if it was rejected."""
        if domain.id in self._domains:
            log.warning("Domain '%s' already registered, skipping duplicate", domain.id)
            return False
        events = (domain.progress_event, domain.complete_event)
        for event in events:
            owner = self._channels.get(event)
            if owner is not None:
                log.warning("Domain '%s' reuses event '%s' of '%s', skipping", domain.id, event, owner)
                return False
        self._domains[domain.id] = domain
        for event in events:
            self._channels[event] = domain.id
        log.debug("Registered domain: %s (%s)", domain.id, domain.name)
        return True

    def get(self, domain_id: str) -> ScanDomain | None:
        return self._domains.get(domain_id)

    def require(self, domain_id: str) -> ScanDomain:
        domain = self._domains.get(domain_id)
        if domain is None:
            raise UnknownDomainError(domain_id, self.ids())
        return domain

    def get_all(self) -> list[ScanDomain]:
        """All domains in display order (``sort_order``, then id)."""
        return sorted(self._domains.values(), key=lambda d: (d.sort_order, d.id))

    def ids(self) -> list[str]:
        return [d.id for d in self.get_all()]

    def __len__(self) -> int:
        return len(self._domains)

    def __iter__(self) -> Iterator[ScanDomain]:
        return iter(self.get_all())

    def __contains__(self, domain_id: str) -> bool:
        return domain_id in self._domains
