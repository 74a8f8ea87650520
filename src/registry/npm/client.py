"""NPM registry client: package documents and weekly download counts."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from common.http_client import AsyncHttpClient
from common.logging_utils import extra_context, is_debug_enabled
from common.schema_validate import DOWNLOADS_SCHEMA, REGISTRY_DOCUMENT_SCHEMA, validate
from constants import Constants

logger = logging.getLogger(__name__)


class NpmRegistryClient:
    """Fetches package metadata from the npm registry and downloads API."""

    def __init__(
        self,
        http: AsyncHttpClient,
        registry_url: str = Constants.REGISTRY_URL_NPM,
        downloads_url: str = Constants.REGISTRY_URL_NPM_DOWNLOADS,
    ):
        """Initialize the client.

        Args:
            http: Shared async HTTP client.
            registry_url: Registry base URL; the package name is appended.
            downloads_url: Weekly downloads endpoint; the package name is appended.
        """
        self._http = http
        self._registry_url = registry_url if registry_url.endswith("/") else registry_url + "/"
        self._downloads_url = downloads_url if downloads_url.endswith("/") else downloads_url + "/"

    def package_url(self, package_name: str) -> str:
        return self._registry_url + package_name

    async def fetch_package_document(self, package_name: str) -> Dict[str, Any]:
        """Fetch the full registry document (packument) for a package.

        Raises:
            RegistryHttpError: On transport or status errors.
            SchemaError: When the body is not a registry document.
        """
        url = self.package_url(package_name)
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="client",
                    action="GET",
                    target=url,
                    package_manager="npm",
                ),
            )
        doc = await self._http.fetch_json(url)
        validate(REGISTRY_DOCUMENT_SCHEMA, doc, what=f"registry document for {package_name}")
        return doc

    async def fetch_weekly_downloads(self, package_name: str) -> int:
        """Fetch last week's download count for a package.

        Raises:
            RegistryHttpError: On transport or status errors.
            SchemaError: When the body has no numeric ``downloads`` field.
        """
        url = self._downloads_url + package_name
        payload: Optional[Any] = await self._http.fetch_json(url)
        validate(DOWNLOADS_SCHEMA, payload, what=f"downloads response for {package_name}")
        return int(payload["downloads"])
