import logging
import os
import socket
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from daysim.application.services.alignment_ledger import AlignmentLedger
from daysim.application.services.arc_engine import HesitationStrainPolicy
from daysim.application.services.arc_service import ArcService
from daysim.application.services.choice_log_recorder import register_choice_log_handlers
from daysim.application.services.content_catalog import StampedCatalogLoader
from daysim.application.services.daily_run_service import DailyRunService
from daysim.application.services.event_bus import EventBus
from daysim.config import EngineSettings
from daysim.domain.repositories import StoryletCatalogProvider
from daysim.infrastructure.content_cache import FileContentCache
from daysim.infrastructure.content_service_client import ContentServiceClient
from daysim.infrastructure.inmemory.catalog import InMemoryStoryletCatalog
from daysim.infrastructure.inmemory.repos import (
    InMemoryAlignmentRepository,
    InMemoryArcRepository,
    InMemoryChoiceLogRepository,
    InMemoryDayStateRepository,
    InMemoryDispositionRepository,
    InMemoryRelationRepository,
    InMemoryStoryletRunRepository,
)
from daysim.infrastructure.inmemory.sample_content import SAMPLE_ARC_STEPS, SAMPLE_ARCS


logger = logging.getLogger(__name__)


@dataclass
class EngineServices:
    daily_runs: DailyRunService
    arcs: ArcService
    alignment: AlignmentLedger
    event_bus: EventBus
    backend: str


def _looks_like_local_mysql_unreachable(database_url: str) -> bool:
    parsed = urlparse(database_url)
    if not parsed.scheme.startswith("mysql"):
        return False
    host = (parsed.hostname or "").strip().lower()
    if host not in {"localhost", "127.0.0.1", "::1"}:
        return False
    timeout = float(os.getenv("DAYSIM_DB_CONNECT_PROBE_TIMEOUT_S", "0.35"))
    try:
        with socket.create_connection((host, parsed.port or 3306), timeout=timeout):
            return False
    except OSError:
        return True


def build_catalog(settings: EngineSettings) -> StoryletCatalogProvider:
    if not settings.content_base_url:
        return InMemoryStoryletCatalog()
    client = ContentServiceClient(
        settings.content_base_url,
        timeout=settings.content_timeout_s,
        retries=settings.content_retries,
        backoff_seconds=settings.content_backoff_s,
    )
    cache = FileContentCache(settings.content_cache_dir, data_version=settings.content_data_version)
    return StampedCatalogLoader(client, cache, ttl_seconds=settings.content_cache_ttl_s)


def _wire(
    settings: EngineSettings,
    *,
    arc_repo,
    choice_log_repo,
    disposition_repo,
    relation_repo,
    day_state_repo,
    run_repo,
    alignment_repo,
    backend: str,
) -> EngineServices:
    event_bus = EventBus()
    register_choice_log_handlers(event_bus=event_bus, choice_log_repo=choice_log_repo)
    ledger = AlignmentLedger(alignment_repo, event_bus)
    arcs = ArcService(
        arc_repo,
        choice_log_repo,
        disposition_repo,
        relation_repo,
        day_state_repo,
        event_bus,
        ledger,
        strain_policy=HesitationStrainPolicy(
            divisor=settings.hesitation_divisor,
            max_bump=settings.hesitation_max_bump,
        ),
        progression_slots_total=settings.progression_slots,
    )
    daily_runs = DailyRunService(
        build_catalog(settings),
        run_repo,
        day_state_repo,
        season_index=settings.season_index,
    )
    return EngineServices(daily_runs=daily_runs, arcs=arcs, alignment=ledger, event_bus=event_bus, backend=backend)


def _build_inmemory_services(settings: EngineSettings) -> EngineServices:
    return _wire(
        settings,
        arc_repo=InMemoryArcRepository(SAMPLE_ARCS, SAMPLE_ARC_STEPS),
        choice_log_repo=InMemoryChoiceLogRepository(),
        disposition_repo=InMemoryDispositionRepository(),
        relation_repo=InMemoryRelationRepository(),
        day_state_repo=InMemoryDayStateRepository(),
        run_repo=InMemoryStoryletRunRepository(),
        alignment_repo=InMemoryAlignmentRepository(),
        backend="memory",
    )


def _build_sql_services(settings: EngineSettings) -> EngineServices:
    from daysim.infrastructure.db.sql import connection
    from daysim.infrastructure.db.sql.repos import (
        SqlAlignmentRepository,
        SqlArcRepository,
        SqlChoiceLogRepository,
        SqlDayStateRepository,
        SqlDispositionRepository,
        SqlRelationRepository,
        SqlStoryletRunRepository,
    )
    from daysim.infrastructure.db.sql.schema import apply_schema

    engine = connection.engine
    if settings.database_url and settings.database_url != connection.DATABASE_URL:
        engine = connection.configure(settings.database_url)
    apply_schema(engine)
    arc_repo = SqlArcRepository()
    if not arc_repo.list_definitions():
        logger.info("Seeding sample arc content")
        arc_repo.save_content(SAMPLE_ARCS, SAMPLE_ARC_STEPS)

    return _wire(
        settings,
        arc_repo=arc_repo,
        choice_log_repo=SqlChoiceLogRepository(),
        disposition_repo=SqlDispositionRepository(),
        relation_repo=SqlRelationRepository(),
        day_state_repo=SqlDayStateRepository(),
        run_repo=SqlStoryletRunRepository(),
        alignment_repo=SqlAlignmentRepository(),
        backend="sql",
    )


def create_engine_services(settings: Optional[EngineSettings] = None) -> EngineServices:
    settings = settings or EngineSettings.from_env()
    database_url = settings.database_url
    if database_url:
        if _looks_like_local_mysql_unreachable(database_url):
            logger.warning("MySQL appears unreachable, falling back to in-memory.")
            return _build_inmemory_services(settings)
        return _build_sql_services(settings)
    return _build_inmemory_services(settings)
