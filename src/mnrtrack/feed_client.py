"""Downloads raw real-time data: TrainTime pages and GTFS-RT feeds."""

import logging
import time
from typing import Optional

import requests
from urllib3.exceptions import ReadTimeoutError

from .errors import FeedTimeoutError, NetworkError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 7.0
CHUNK_SIZE = 16 * 1024


class FeedClient:
    """
    Fetches real-time sources over HTTP.

    A single deadline bounds each download, including the time spent reading
    the body. When it passes the connection is closed and FeedTimeoutError is
    raised. There are no retries here.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_text(self, url: str) -> str:
        """
        Download a page and decode it as text.

        Args:
            url: Page URL.

        Returns:
            The page body.
        """
        body = self._download(url)
        return body.decode("utf-8", errors="replace")

    def fetch_bytes(self, url: str, api_key: Optional[str] = None) -> bytes:
        """
        Download a binary feed.

        Args:
            url: Feed URL.
            api_key: Sent as the x-api-key header when given.

        Returns:
            Raw protobuf bytes.
        """
        headers = {"x-api-key": api_key} if api_key else None
        return self._download(url, headers)

    def _download(self, url: str, headers: Optional[dict] = None) -> bytes:
        logger.debug(f"Fetching {url}")
        deadline = time.monotonic() + self.timeout
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout, stream=True)
        except requests.Timeout as e:
            logger.warning(f"Request to {url} timed out: {e}")
            raise FeedTimeoutError(f"Request to {url} timed out after {self.timeout:g} seconds.") from e
        except requests.RequestException as e:
            logger.warning(f"Could not download {url}: {e}")
            raise NetworkError(f"Could not download {url} ({e}).") from e

        with response:
            if response.status_code in {401, 403}:
                logger.error(f"Request to {url} unauthorized (HTTP {response.status_code})")
            try:
                response.raise_for_status()
            except requests.HTTPError as e:
                logger.warning(f"Could not download {url}: {e}")
                raise NetworkError(f"Could not download {url} (HTTP {response.status_code}).") from e

            chunks = []
            try:
                for chunk in response.iter_content(CHUNK_SIZE):
                    chunks.append(chunk)
                    if time.monotonic() > deadline:
                        raise FeedTimeoutError(
                            f"Request to {url} timed out after {self.timeout:g} seconds."
                        )
            except FeedTimeoutError:
                logger.warning(f"Request to {url} timed out while reading the body")
                raise
            except requests.Timeout as e:
                logger.warning(f"Request to {url} timed out: {e}")
                raise FeedTimeoutError(f"Request to {url} timed out after {self.timeout:g} seconds.") from e
            except requests.ConnectionError as e:
                # a stalled body surfaces as ConnectionError wrapping the read timeout
                if e.args and isinstance(e.args[0], ReadTimeoutError):
                    logger.warning(f"Request to {url} timed out while reading the body: {e}")
                    raise FeedTimeoutError(f"Request to {url} timed out after {self.timeout:g} seconds.") from e
                logger.warning(f"Could not download {url}: {e}")
                raise NetworkError(f"Could not download {url} ({e}).") from e
            except requests.RequestException as e:
                logger.warning(f"Could not download {url}: {e}")
                raise NetworkError(f"Could not download {url} ({e}).") from e

        return b"".join(chunks)

    def close(self) -> None:
        self.session.close()
