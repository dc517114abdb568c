"""Read-only CardDAV client.

Fetches every vCard of the account's first address book:

1. ``PROPFIND /.well-known/carddav`` for the service root (3xx Location);
2. ``current-user-principal`` of the root;
3. ``addressbook-home-set`` of the principal;
4. address-book collections below the home set;
5. ``addressbook-query`` for the card hrefs, then ``addressbook-multiget``
   for their etags and data.
"""

import logging
import threading
from urllib.parse import urljoin, urlparse
from xml.etree import ElementTree
from xml.sax.saxutils import escape

import requests

from ..exceptions import FetchError
from ..sync.models import RemoteRecord
from .async_utils import run_sync

logger = logging.getLogger(__name__)

NS = {"d": "DAV:", "card": "urn:ietf:params:xml:ns:carddav"}

_PROPFIND_PRINCIPAL = """<?xml version="1.0" encoding="utf-8"?>
<d:propfind xmlns:d="DAV:">
  <d:prop><d:current-user-principal/></d:prop>
</d:propfind>"""

_PROPFIND_HOME_SET = """<?xml version="1.0" encoding="utf-8"?>
<d:propfind xmlns:d="DAV:" xmlns:card="urn:ietf:params:xml:ns:carddav">
  <d:prop><card:addressbook-home-set/></d:prop>
</d:propfind>"""

_PROPFIND_COLLECTIONS = """<?xml version="1.0" encoding="utf-8"?>
<d:propfind xmlns:d="DAV:">
  <d:prop><d:displayname/><d:resourcetype/></d:prop>
</d:propfind>"""

_ADDRESSBOOK_QUERY = """<?xml version="1.0" encoding="utf-8"?>
<card:addressbook-query xmlns:d="DAV:" xmlns:card="urn:ietf:params:xml:ns:carddav">
  <d:prop><d:getetag/></d:prop>
  <card:filter><card:prop-filter name="FN"/></card:filter>
</card:addressbook-query>"""

_ADDRESSBOOK_MULTIGET = """<?xml version="1.0" encoding="utf-8"?>
<card:addressbook-multiget xmlns:d="DAV:" xmlns:card="urn:ietf:params:xml:ns:carddav">
  <d:prop><d:getetag/><card:address-data/></d:prop>
{hrefs}
</card:addressbook-multiget>"""


class CardDAVClient:
    def __init__(
        self,
        server_url: str,
        username: str,
        password: str,
        timeout: tuple[float, float] = (10, 60),
    ):
        self.server_url = server_url.rstrip("/") + "/"
        self.username = username
        self.password = password
        self.timeout = timeout
        self._thread_local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        """Session of the current thread."""
        if not hasattr(self._thread_local, "session"):
            session = requests.Session()
            session.auth = (self.username, self.password)
            self._thread_local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return self._thread_local.session

    def close(self) -> None:
        """Close every session this client opened, in any thread."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._thread_local = threading.local()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        url: str,
        body: str | None = None,
        depth: str | None = None,
        allow_redirects: bool = True,
    ) -> requests.Response:
        headers = {"Content-Type": "application/xml; charset=utf-8"}
        if depth is not None:
            headers["Depth"] = depth
        try:
            response = self.session.request(
                method,
                url,
                data=body.encode("utf-8") if body else None,
                headers=headers,
                timeout=self.timeout,
                allow_redirects=allow_redirects,
            )
        except requests.RequestException as exc:
            raise FetchError(f"{method} {url} failed: {exc}") from exc
        if response.status_code == 401:
            raise FetchError("Invalid credentials")
        return response

    def _multistatus(
        self, method: str, url: str, body: str, depth: str
    ) -> list[ElementTree.Element]:
        """Send a WebDAV request and return its ``<d:response>`` elements."""
        response = self._request(method, url, body, depth)
        if response.status_code >= 400:
            raise FetchError(
                f"{method} {url} returned HTTP {response.status_code}"
            )
        try:
            tree = ElementTree.fromstring(response.content)
        except ElementTree.ParseError as exc:
            raise FetchError(f"Invalid XML from {url}: {exc}") from exc
        return tree.findall("d:response", NS)

    @staticmethod
    def _text(element: ElementTree.Element, path: str) -> str | None:
        node = element.find(path, NS)
        if node is None or node.text is None:
            return None
        return node.text.strip()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover_root(self) -> str:
        """Service root from ``/.well-known/carddav``, or the server URL."""
        well_known = urljoin(self.server_url, "/.well-known/carddav")
        try:
            response = self._request(
                "PROPFIND", well_known, allow_redirects=False
            )
        except FetchError as exc:
            logger.warning("Service discovery failed: %s", exc)
            return self.server_url
        location = response.headers.get("Location")
        if 300 <= response.status_code < 400 and location:
            root = urlparse(urljoin(well_known, location))
            endpoint = urlparse(self.server_url)
            return root._replace(scheme=endpoint.scheme).geturl()
        return self.server_url

    def fetch_principal_url(self, root_url: str) -> str:
        responses = self._multistatus(
            "PROPFIND", root_url, _PROPFIND_PRINCIPAL, depth="0"
        )
        for response in responses:
            href = self._text(
                response, "d:propstat/d:prop/d:current-user-principal/d:href"
            )
            if href:
                return urljoin(root_url, href)
        raise FetchError("Server did not report a current-user-principal")

    def fetch_home_url(self, principal_url: str) -> str:
        responses = self._multistatus(
            "PROPFIND", principal_url, _PROPFIND_HOME_SET, depth="0"
        )
        principal_path = urlparse(principal_url).path.rstrip("/")
        for response in responses:
            href = self._text(response, "d:href") or ""
            if urlparse(href).path.rstrip("/") != principal_path:
                continue
            home = self._text(
                response, "d:propstat/d:prop/card:addressbook-home-set/d:href"
            )
            if home:
                return urljoin(principal_url, home)
        raise FetchError("Cannot find the address book home set")

    def fetch_address_books(self, home_url: str) -> list[str]:
        """URLs of the address-book collections below *home_url*."""
        responses = self._multistatus(
            "PROPFIND", home_url, _PROPFIND_COLLECTIONS, depth="1"
        )
        books = []
        for response in responses:
            resource_type = response.find(
                "d:propstat/d:prop/d:resourcetype", NS
            )
            if resource_type is None:
                continue
            if resource_type.find("card:addressbook", NS) is None:
                continue
            href = self._text(response, "d:href")
            if href:
                books.append(urljoin(home_url, href))
        return books

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    def query_card_hrefs(self, book_url: str) -> list[str]:
        responses = self._multistatus(
            "REPORT", book_url, _ADDRESSBOOK_QUERY, depth="1"
        )
        book_path = urlparse(book_url).path
        hrefs = []
        for response in responses:
            href = self._text(response, "d:href")
            if not href:
                continue
            path = urlparse(urljoin(book_url, href)).path
            if path == book_path or path.endswith("/"):
                continue
            hrefs.append(path)
        return hrefs

    def multiget(self, book_url: str, hrefs: list[str]) -> list[RemoteRecord]:
        body = _ADDRESSBOOK_MULTIGET.format(
            hrefs="\n".join(f"  <d:href>{escape(h)}</d:href>" for h in hrefs)
        )
        responses = self._multistatus("REPORT", book_url, body, depth="1")
        records = []
        for response in responses:
            href = self._text(response, "d:href")
            etag = self._text(response, "d:propstat/d:prop/d:getetag")
            node = response.find("d:propstat/d:prop/card:address-data", NS)
            if not href or node is None or not node.text:
                logger.debug("Skipping incomplete multiget response %s", href)
                continue
            records.append(
                RemoteRecord(
                    url=urljoin(book_url, href),
                    etag=etag or "",
                    data=node.text,
                )
            )
        return records

    def fetch_contacts(self) -> list[RemoteRecord]:
        """Fetch every card of the first address book.

        Returns:
            Remote records in server order (contacts and group markers).

        Raises:
            FetchError: On authentication, transport or protocol failure.
        """
        root_url = self.discover_root()
        principal_url = self.fetch_principal_url(root_url)
        home_url = self.fetch_home_url(principal_url)
        books = self.fetch_address_books(home_url)
        if not books:
            raise FetchError(f"No address book found under {home_url}")
        logger.debug("Using address book %s", books[0])
        hrefs = self.query_card_hrefs(books[0])
        if not hrefs:
            return []
        records = self.multiget(books[0], hrefs)
        logger.info("Fetched %d cards from %s", len(records), books[0])
        return records


async def fetch_contacts(
    username: str, password: str, server_url: str
) -> list[RemoteRecord]:
    """Fetch all remote records for an account (the engine's fetcher).

    Raises:
        FetchError: On authentication, transport or protocol failure.
    """
    client = CardDAVClient(server_url, username, password)
    try:
        return await run_sync(client.fetch_contacts)
    finally:
        client.close()
