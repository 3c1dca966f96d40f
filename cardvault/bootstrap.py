"""
Composition root.

Builds the one cache, queue, transport and provider set the process shares,
and wires them into the resolver and orchestrator.
"""

from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardvault.config import Settings
from cardvault.db.store import SqlImportStore
from cardvault.providers import MtgApiClient, ProviderHttp, ScryfallClient, TranslationTable
from cardvault.services.card_resolver import CardResolver
from cardvault.services.import_orchestrator import ImportOrchestrator
from cardvault.services.lru_cache import LRUCache
from cardvault.services.request_queue import RequestQueue
from cardvault.services.transport import RetryingTransport, RetryPolicy


@dataclass
class Services:
    """Long-lived collaborators owned by the app or a CLI run."""

    client: httpx.AsyncClient
    cache: LRUCache
    queue: RequestQueue
    transport: RetryingTransport
    resolver: CardResolver
    store: SqlImportStore
    orchestrator: ImportOrchestrator

    async def aclose(self) -> None:
        await self.orchestrator.shutdown()
        self.queue.clear()
        await self.client.aclose()


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        headers={"User-Agent": settings.user_agent, "Accept": "application/json"},
        follow_redirects=True,
        timeout=settings.http_timeout,
    )


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    client: httpx.AsyncClient | None = None,
) -> Services:
    """
    Wire the import pipeline.

    Args:
        settings: Application settings
        session_factory: Session factory for the collection database
        client: Shared httpx client; one is built from settings when omitted
    """
    client = client or build_http_client(settings)
    policy = RetryPolicy(
        max_retries=settings.retry_max_retries,
        initial_delay=settings.retry_initial_delay,
        multiplier=settings.retry_multiplier,
        max_delay=settings.retry_max_delay,
    )
    transport = RetryingTransport(client, policy)
    queue = RequestQueue(concurrency=settings.queue_concurrency)
    cache: LRUCache = LRUCache(settings.cache_max_entries, ttl=settings.cache_ttl_seconds)

    http = ProviderHttp(transport, queue)
    resolver = CardResolver(
        primary=ScryfallClient(http, settings.scryfall_api_url),
        legacy=MtgApiClient(http, settings.mtgio_api_url),
        cache=cache,
        localizer=TranslationTable(path=settings.translations_path)
        if settings.translations_path
        else None,
    )
    store = SqlImportStore(
        session_factory,
        max_batch_operations=settings.import_write_batch_size,
        max_report_details=settings.import_max_report_details,
    )
    orchestrator = ImportOrchestrator(
        store,
        resolver,
        sub_batch_size=settings.import_sub_batch_size,
        checkpoint_every=settings.import_checkpoint_every,
        diff_fields=settings.import_diff_fields,
        max_payload_bytes=settings.import_max_payload_bytes,
        max_report_details=settings.import_max_report_details,
    )
    return Services(
        client=client,
        cache=cache,
        queue=queue,
        transport=transport,
        resolver=resolver,
        store=store,
        orchestrator=orchestrator,
    )
