"""Domain catalog.

Fetches the backend's email domains and reports which are usable for
inbox creation. The catalog never chooses a domain; the session
controller reads the eligible set and decides.
"""

from __future__ import annotations

import logging

from .client import DomainApi
from .errors import ApiError, DomainFetchError, InboxError, MalformedPayloadError
from .models import CatalogStatus, Domain

logger = logging.getLogger(__name__)


class DomainCatalog:
    """Holds the last fetched domain list and its load state.

    `generation` increments on every successful load. The controller
    uses it to auto-provision at most once per catalog-ready event.
    """

    def __init__(self, api: DomainApi) -> None:
        self._api = api
        self._domains: list[Domain] = []
        self._status = CatalogStatus.IDLE
        self._error: InboxError | None = None
        self._generation = 0

    @property
    def status(self) -> CatalogStatus:
        return self._status

    @property
    def error(self) -> InboxError | None:
        return self._error

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def domains(self) -> list[Domain]:
        return list(self._domains)

    @property
    def is_ready(self) -> bool:
        """Finished loading without error."""
        return self._status == CatalogStatus.READY

    def eligible(self) -> list[Domain]:
        """Domains usable for inbox creation (active and non-private)."""
        return [d for d in self._domains if d.is_eligible]

    @property
    def eligible_count(self) -> int:
        return len(self.eligible())

    async def load(self) -> bool:
        """Fetch domains. Returns True when the catalog is ready."""
        self._status = CatalogStatus.LOADING
        self._error = None
        try:
            payload = await self._api.list_domains()
        except ApiError as exc:
            self._fail(DomainFetchError.from_api(exc, "Failed to load email domains"))
            return False

        if not isinstance(payload, list):
            self._fail(
                MalformedPayloadError(
                    f"Domain list is not in expected format: {type(payload).__name__}",
                    payload_type=type(payload).__name__,
                )
            )
            return False

        try:
            domains = [Domain.from_payload(item) for item in payload]
        except MalformedPayloadError as exc:
            self._fail(exc)
            return False

        self._domains = domains
        self._status = CatalogStatus.READY
        self._generation += 1
        logger.info(
            "Loaded %d domain(s), %d eligible", len(domains), self.eligible_count
        )
        if not self.eligible_count:
            logger.warning("No active domains available for inbox creation")
        return True

    def _fail(self, error: InboxError) -> None:
        logger.warning("Domain catalog error: %s", error)
        self._error = error
        self._status = CatalogStatus.ERROR
