"""did:cel resolution.

Locates the event log (caller-supplied bytes, or fetched from the DID's
storage hint), verifies it, and checks that the storage location is one
the log itself approves.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from datetime import datetime
from typing import Protocol

import httpx

from cel_did.config import Settings
from cel_did.did import CelDid
from cel_did.document import DidDocument
from cel_did.errors import LogFetchError
from cel_did.events import parse_log
from cel_did.log_verifier import EventLogVerifier
from cel_did.logging import get_logger

logger = get_logger(__name__)


class LogFetcher(Protocol):
    """Retrieves stored event logs."""

    def fetch(self, uri: str) -> bytes: ...


class HttpLogFetcher:
    """Fetches event logs over HTTP(S) with a bounded timeout. Never retries."""

    def __init__(self, timeout: float = 10.0, client: httpx.Client | None = None) -> None:
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=False)

    def fetch(self, uri: str) -> bytes:
        logger.debug("event_log_fetch", uri=uri)
        try:
            response = self._client.get(uri)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise LogFetchError(uri, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise LogFetchError(uri, str(exc) or type(exc).__name__) from exc
        return response.content

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpLogFetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class VerifiedLogCache:
    """
    Thread-safe LRU of verified projections keyed by the log's head hash.

    The head hash commits to the whole chain, so an entry never goes stale;
    only capacity evicts.
    """

    def __init__(self, maxsize: int = 1024) -> None:
        if maxsize < 0:
            raise ValueError("maxsize must not be negative")
        self._maxsize = maxsize
        self._entries: OrderedDict[str, DidDocument] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, head: str) -> DidDocument | None:
        with self._lock:
            document = self._entries.get(head)
            if document is not None:
                self._entries.move_to_end(head)
            return document

    def put(self, head: str, document: DidDocument) -> None:
        if self._maxsize == 0:
            return
        with self._lock:
            self._entries[head] = document
            self._entries.move_to_end(head)
            while len(self._entries) > self._maxsize:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, head: object) -> bool:
        with self._lock:
            return head in self._entries


class Resolver:
    """
    Resolves did:cel identifiers to verified DID documents.

    Example:
        >>> resolver = Resolver(verifier, fetcher=HttpLogFetcher())
        >>> document = resolver.resolve("did:cel:z...?storage=https://logs.example/")
    """

    def __init__(
        self,
        verifier: EventLogVerifier,
        fetcher: LogFetcher | None = None,
        cache: VerifiedLogCache | None = None,
    ) -> None:
        self._verifier = verifier
        self._fetcher = fetcher
        self._cache = cache

    @classmethod
    def from_settings(cls, settings: Settings) -> Resolver:
        return cls(
            verifier=EventLogVerifier.from_settings(settings),
            fetcher=HttpLogFetcher(timeout=settings.fetch_timeout),
            cache=VerifiedLogCache(settings.cache_size) if settings.cache_size else None,
        )

    def resolve(
        self,
        did: str | CelDid,
        log: bytes | None = None,
        now: datetime | None = None,
    ) -> DidDocument:
        """
        Resolve ``did``.

        Args:
            did: ``did:cel:<id>[?storage=<uri>]``.
            log: The event log; fetched from ``storage + id`` when omitted.
            now: When given, the log must have a recent enough heartbeat.

        Raises:
            InvalidDIDError: If the DID cannot be parsed.
            LogFetchError: If the log cannot be located or retrieved.
            ValueError: If ``now`` carries no UTC offset.
            ResolutionError: If the log is rejected.
        """
        cel = did if isinstance(did, CelDid) else CelDid.parse(did)
        bound = logger.bind(did=cel.did)

        if log is None:
            url = cel.log_url
            if url is None:
                raise LogFetchError(cel.did, "no event log supplied and no storage hint")
            if self._fetcher is None:
                raise LogFetchError(url, "no fetcher configured")
            log = self._fetcher.fetch(url)

        records = parse_log(log)
        head = records[-1].event_hash

        document = self._cache.get(head) if self._cache is not None else None
        if document is None or document.did != cel.did:
            document = self._verifier.verify(cel, records, now)
            if self._cache is not None:
                self._cache.put(head, document)
            return document

        # a cached document may have been verified under another hint or clock
        bound.debug("resolution_cache_hit", head=head)
        if now is not None:
            self._verifier.check_liveness(document, now)
        if cel.storage is not None:
            self._verifier.check_storage(document, cel.storage)
        return document
