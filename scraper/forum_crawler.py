"""Crawler for the event sub-forum of the Gruppe W forum."""
import logging
import re
import time
from typing import Iterator, List, Tuple

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


class ForumCrawler:
    """Fetches event threads from the forum."""

    BASE_URL = "https://www.gruppe-w.de/forum/"
    EVENTS_PATH = "viewforum.php?forum_id=4"
    EVENTS_PATH_SUFFIX = "&rowstart="
    EVENTS_THREAD_AMOUNT = 20
    EVENTS_MASK_START = "<!--pre_forum-->"
    EVENTS_MASK_END = "<!--sub_forum_table-->"
    EVENTS_REJECT_STICKY = "Thema gepinnt"
    THREAD_LINK = re.compile(r"^viewthread\.php\?thread_id=\d+")

    def __init__(self, base_url: str = BASE_URL, timeout: int = 30, attempts: int = 1):
        """
        Initialize the forum crawler.

        Args:
            base_url: Url of the forum root, ending with a slash
            timeout: HTTP request timeout in seconds (default: 30)
            attempts: Number of tries per page, back-off applies when above 1 (default: 1)
        """
        self.base_url = base_url if base_url.endswith('/') else base_url + '/'
        self.timeout = timeout
        self.attempts = max(1, attempts)

    def fetch_lines(self, url: str) -> List[str]:
        """
        Fetch a page and split it into lines.

        Args:
            url: Url of the page

        Returns:
            Lines of the page

        Raises:
            requests.RequestException: If all attempts fail
        """
        base_delay = 1  # seconds

        for attempt in range(self.attempts):
            try:
                logger.debug(f"Fetching {url} (attempt {attempt + 1}/{self.attempts})")
                response = requests.get(url, timeout=self.timeout)
                response.raise_for_status()
                return response.text.splitlines()

            except requests.RequestException as e:
                if attempt < self.attempts - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.attempts}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"Fetching {url} failed after {self.attempts} attempts. Last error: {e}"
                    )
                    raise

    def get_event_urls(self) -> List[str]:
        """
        Collect the urls of all event threads by paging through the sub-forum.

        Returns:
            Thread urls in forum order, without pinned threads
        """
        urls = []
        row_start = 0

        while True:
            page_url = (
                f"{self.base_url}{self.EVENTS_PATH}{self.EVENTS_PATH_SUFFIX}{row_start}"
            )
            html_content = "\n".join(self.fetch_lines(page_url))
            threads_on_page, page_urls = self._parse_thread_table(html_content)

            new_urls = [url for url in page_urls if url not in urls]
            urls.extend(new_urls)
            logger.info(
                f"Found {len(new_urls)} event threads on page starting at {row_start}"
            )

            # An empty page, or one repeating known threads, is past the last page
            if threads_on_page == 0 or (page_urls and not new_urls):
                break
            row_start += self.EVENTS_THREAD_AMOUNT

        logger.info(f"Found {len(urls)} event threads in total")
        return urls

    def fetch_threads(self, urls: List[str]) -> Iterator[Tuple[str, List[str]]]:
        """
        Fetch event threads one after another.

        Args:
            urls: Thread urls

        Yields:
            Pairs of (thread url, page lines)
        """
        for index, url in enumerate(urls, start=1):
            yield url, self.fetch_lines(url)
            if index % 10 == 0:
                logger.info(f"Fetched {index} of {len(urls)} event threads")

    def _parse_thread_table(self, html_content: str) -> Tuple[int, List[str]]:
        """
        Parse the thread table of a sub-forum page.

        Args:
            html_content: HTML content of the page

        Returns:
            Tuple of (number of thread rows including pinned ones, urls of unpinned threads)
        """
        begin = html_content.find(self.EVENTS_MASK_START)
        if begin < 0:
            logger.warning("Sub-forum page has no thread table")
            return 0, []
        end = html_content.find(self.EVENTS_MASK_END, begin)
        table = html_content[begin:end] if end >= 0 else html_content[begin:]

        soup = BeautifulSoup(table, 'html.parser')
        threads = 0
        urls = []

        for row in soup.find_all('tr'):
            link = row.find('a', href=self.THREAD_LINK)
            if link is None:
                continue
            threads += 1
            if self.EVENTS_REJECT_STICKY in str(row):
                continue
            url = self.base_url + link['href']
            if url not in urls:
                urls.append(url)

        return threads, urls
