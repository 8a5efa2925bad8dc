# sessionshare/jobs/worker.py
# arq worker that compacts shares nobody has read since their last sync.
# Run with: arq sessionshare.jobs.worker.WorkerSettings

from arq import cron
from arq.connections import RedisSettings

from sessionshare.config import get_settings
from sessionshare.db.base import build_engine, build_session_factory
from sessionshare.errors import StorageError
from sessionshare.observability.tracing import init_otel
from sessionshare.repositories.share_repository import ShareRepository
from sessionshare.services.share_service import ShareService
from sessionshare.utils.logger import log_exception, log_info

settings = get_settings()


async def compact_stale_shares(ctx) -> dict:
    """Materialize up to COMPACTION_BATCH_SIZE shares whose snapshot is behind."""
    shares: ShareRepository = ctx["share_repository"]
    service: ShareService = ctx["share_service"]
    batch_size = ctx.get("batch_size", settings.COMPACTION_BATCH_SIZE)

    compacted = 0
    failed = 0
    for share_id in await shares.list_stale_share_ids(limit=batch_size):
        try:
            await service.compactor.materialize(share_id)
            compacted += 1
        except StorageError as e:
            # Share removed mid-run or storage hiccup; next run retries
            log_exception(e, f"compact_stale_shares: share={share_id}")
            failed += 1

    log_info(f"compact_stale_shares: compacted={compacted} failed={failed}")
    return {"compacted": compacted, "failed": failed}


async def startup(ctx):
    engine = build_engine(settings)
    factory = build_session_factory(engine)
    ctx["engine"] = engine
    ctx["share_repository"] = ShareRepository(factory)
    ctx["share_service"] = ShareService.from_session_factory(factory, settings)
    if settings.OTEL_ENABLED:
        init_otel(engine=engine, service_name=f"{settings.SERVICE_NAME}-worker")


async def shutdown(ctx):
    engine = ctx.get("engine")
    if engine is not None:
        await engine.dispose()


class WorkerSettings:
    functions = [compact_stale_shares]
    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)
    cron_jobs = [
        cron(compact_stale_shares, minute=set(settings.COMPACTION_CRON_MINUTES)),
    ]
    on_startup = startup
    on_shutdown = shutdown
