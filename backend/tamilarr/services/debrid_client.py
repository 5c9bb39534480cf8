"""
RealDebridClient - Integration with the Real-Debrid caching provider

This module wraps the provider operations the resolution engine needs:
1. Add a magnet (creates a provider torrent job)
2. Select files on a job
3. Poll job status, files and hoster links
4. Unrestrict a hoster link into a direct download URL

Real-Debrid API Documentation:
    https://api.real-debrid.com/

Fault contract:
    - ResourceNotFoundError: the provider no longer knows the torrent id
    - NetworkRetryableError: timeouts, connection errors, 429, 502/503/504
      (retried here with exponential backoff before surfacing)
    - ProviderAPIError: every other failure

Usage Example:
    client = RealDebridClient(api_key="...")

    added = await client.add_magnet("magnet:?xt=urn:btih:...")
    await client.select_files(added["id"])
    info = await client.get_torrent_info(added["id"])
"""

import logging
from typing import Dict, Any, Optional

import httpx

from tamilarr.config import Config
from tamilarr.services.exceptions import (
    ProviderAPIError,
    NetworkRetryableError,
    classify_http_error,
    retry_on_network_error,
)
from tamilarr.services.rate_limiter import rate_limited

logger = logging.getLogger(__name__)


class RealDebridClient:
    """
    Async client for the Real-Debrid REST API.

    Attributes:
        api_key: Private API token (Bearer)
        base_url: REST base URL
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize RealDebridClient.

        Args:
            api_key: Real-Debrid private API token
            base_url: REST base URL (defaults to Config.REAL_DEBRID_BASE_URL)
            timeout: Request timeout in seconds (defaults to Config.DEBRID_REQUEST_TIMEOUT)
            transport: Optional httpx transport (used to stub the provider)
        """
        if not api_key:
            raise ValueError("Real-Debrid API key is required")

        self.api_key = api_key
        self.base_url = (base_url or Config.REAL_DEBRID_BASE_URL).rstrip('/')
        self.timeout = timeout if timeout is not None else Config.DEBRID_REQUEST_TIMEOUT
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.api_key}',
            'Accept': 'application/json',
        }

    @retry_on_network_error(max_retries=Config.DEBRID_MAX_RETRIES)
    @rate_limited(service="realdebrid")
    async def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Make an API request to Real-Debrid.

        Args:
            method: HTTP method (GET, POST)
            endpoint: API endpoint (e.g., /torrents/info/ABC)
            data: Form-encoded body

        Returns:
            Parsed JSON response, or None for empty (204) responses

        Raises:
            ResourceNotFoundError: Torrent id unknown to the provider
            NetworkRetryableError: Transient failure (after retries)
            ProviderAPIError: Any other failure
        """
        url = f"{self.base_url}{endpoint}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    data=data
                )
        except httpx.TimeoutException as e:
            raise NetworkRetryableError(f"Request timeout to {endpoint}", original_exception=e) from e
        except httpx.TransportError as e:
            raise NetworkRetryableError(f"Connection error to {endpoint}: {e}", original_exception=e) from e

        if response.status_code >= 400:
            error_data = None
            try:
                error_data = response.json()
            except ValueError:
                pass

            raise classify_http_error(
                response.status_code,
                f"Real-Debrid API error on {method} {endpoint}",
                error_data
            )

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise ProviderAPIError(
                f"Malformed response from {endpoint}",
                status_code=response.status_code
            ) from e

    # =========================================================================
    # Torrent Endpoints
    # =========================================================================

    async def add_magnet(self, magnet: str) -> Dict[str, Any]:
        """
        Submit a magnet to the provider.

        The provider returns the existing torrent when the same magnet was
        already added to the account.

        Args:
            magnet: Magnet URI

        Returns:
            Dict with 'id' (torrent id) and 'uri'

        Raises:
            ProviderAPIError: If the provider rejects the magnet or returns no id
        """
        result = await self._request('POST', '/torrents/addMagnet', data={'magnet': magnet})
        if not isinstance(result, dict) or not result.get('id'):
            raise ProviderAPIError("addMagnet response carried no torrent id", response_data=result)

        logger.info(f"Magnet added to Real-Debrid: torrent id {result['id']}")
        return result

    async def select_files(self, torrent_id: str, file_ids: str = 'all') -> bool:
        """
        Select files to download on a torrent.

        A 202 answer means the selection was already made and counts as success.

        Args:
            torrent_id: Provider torrent id
            file_ids: Comma-separated file ids or "all"

        Returns:
            True on success

        Raises:
            ResourceNotFoundError: Torrent id unknown to the provider
            ProviderAPIError: Any other failure
        """
        await self._request('POST', f'/torrents/selectFiles/{torrent_id}', data={'files': file_ids})
        logger.debug(f"Files selected on torrent {torrent_id}: {file_ids}")
        return True

    async def get_torrent_info(self, torrent_id: str) -> Dict[str, Any]:
        """
        Get status, files and links of a torrent.

        Args:
            torrent_id: Provider torrent id

        Returns:
            Torrent info with at least 'id', 'status', 'files', 'links'

        Raises:
            ResourceNotFoundError: Torrent id unknown to the provider
            ProviderAPIError: Any other failure
        """
        info = await self._request('GET', f'/torrents/info/{torrent_id}')
        if not isinstance(info, dict):
            raise ProviderAPIError(f"Malformed torrent info for {torrent_id}", response_data=info)
        return info

    async def add_and_select(self, magnet: str) -> Optional[Dict[str, Any]]:
        """
        Add a magnet, select all files and return the fresh torrent info.

        Used as the fallback when a bare add-magnet failed. Never raises:
        any provider fault is logged and reported as None.

        Args:
            magnet: Magnet URI

        Returns:
            Torrent info dict, or None on failure
        """
        try:
            added = await self.add_magnet(magnet)
            torrent_id = added['id']
            await self.select_files(torrent_id, 'all')
            return await self.get_torrent_info(torrent_id)
        except ProviderAPIError as e:
            logger.error(f"Add-and-select failed: {e}")
            return None

    # =========================================================================
    # Link / Account Endpoints
    # =========================================================================

    async def unrestrict_link(self, link: str) -> Dict[str, Any]:
        """
        Turn a hoster link into a direct download URL.

        Args:
            link: Hoster link from a torrent's 'links' list

        Returns:
            Dict with at least 'download' (direct URL), 'filename', 'filesize'

        Raises:
            ProviderAPIError: If the link cannot be unrestricted
        """
        result = await self._request('POST', '/unrestrict/link', data={'link': link})
        if not isinstance(result, dict) or not result.get('download'):
            raise ProviderAPIError("unrestrict response carried no download URL", response_data=result)
        return result

    async def get_user(self) -> Dict[str, Any]:
        """Get the account owning the API token."""
        return await self._request('GET', '/user')
