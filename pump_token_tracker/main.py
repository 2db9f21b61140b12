from __future__ import annotations

import asyncio
import os
import signal

import aiohttp
from dotenv import load_dotenv
from telegram.ext import ApplicationBuilder

from .birdeye import BirdeyeClient
from .bot import register_handlers
from .config import FilterStore, load_config
from .db import Database
from .dexscreener import AsyncRateLimiter, DexscreenerClient
from .discovery import ProgramPoller
from .enricher import TokenEnricher
from .logger import setup_logging
from .pipeline import AlertDispatcher, RateGovernor, TokenPipeline
from .rpc import SolanaRpcClient
from .scheduler import Scanner
from .stream import PumpPortalStream
from .types import AppContext
from .webhook import WebhookReceiver


def main() -> None:
    load_dotenv()
    config = load_config()
    logger = setup_logging(config.log_level, config.log_file or None)

    db_dir = os.path.dirname(config.sqlite_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    async def post_init(application):
        db = await Database.connect(config.sqlite_path)
        await db.init()

        timeout = aiohttp.ClientTimeout(total=config.http_timeout_sec)
        session = aiohttp.ClientSession(timeout=timeout)

        rpc_limiter = AsyncRateLimiter(config.http_max_rps, config.http_max_concurrency)
        market_limiter = AsyncRateLimiter(config.http_max_rps, config.http_max_concurrency)
        rpc = SolanaRpcClient(session, config.rpc_url, rpc_limiter, logger)

        providers = [DexscreenerClient(session, market_limiter, logger)]
        if config.birdeye_api_key:
            providers.append(BirdeyeClient(session, market_limiter, config.birdeye_api_key, logger))
        else:
            logger.info("birdeye_fallback_disabled_missing_api_key")

        enricher = TokenEnricher(
            rpc,
            providers,
            logger,
            retry_attempts=config.market_retry_attempts,
            retry_delay_sec=config.market_retry_delay_sec,
        )
        filter_store = FilterStore(config.filters)
        dispatcher = AlertDispatcher(
            application.bot,
            config.alert_chat_ids,
            config.allowed_thread_ids,
            logger,
            dry_run=config.dry_run,
        )
        pipeline = TokenPipeline(
            rpc,
            enricher,
            filter_store,
            dispatcher,
            db,
            logger,
            RateGovernor(config.rate_limit_events, config.rate_limit_window_sec),
            dedup_window_sec=config.dedup_window_sec,
            notify_rejections=config.notify_rejections,
            bypass_filters=config.bypass_filters,
        )
        app_ctx = AppContext(
            config=config,
            logger=logger,
            db=db,
            session=session,
            rpc=rpc,
            enricher=enricher,
            filter_store=filter_store,
            pipeline=pipeline,
        )
        application.bot_data["app_ctx"] = app_ctx

        poller = ProgramPoller(rpc, db, config.pump_program_id, config.poll_signature_limit, logger)
        scanner = Scanner(app_ctx, pipeline, dispatcher, poller)
        application.bot_data["scanner"] = scanner

        jobs = []
        if "poll" in config.sources:
            jobs.append(
                application.job_queue.run_repeating(
                    scanner.poll_job,
                    interval=config.poll_interval_sec,
                    first=3,
                    name="program_poller",
                )
            )
        jobs.append(
            application.job_queue.run_repeating(
                scanner.top_tokens_job,
                interval=config.top_tokens_interval_sec,
                first=config.top_tokens_interval_sec,
                name="top_tokens",
            )
        )
        application.bot_data["jobs"] = jobs

        if "stream" in config.sources:
            stream = PumpPortalStream(session, config.pumpportal_ws_url, scanner.submit, logger)
            application.bot_data["stream"] = stream
            application.bot_data["stream_task"] = asyncio.create_task(stream.run())

        if "webhook" in config.sources:
            receiver = WebhookReceiver(scanner.submit, config.webhook_secret, logger)
            await receiver.start(config.webhook_host, config.webhook_port)
            application.bot_data["webhook"] = receiver

        logger.info(
            "bot_ready",
            extra={
                "sources": config.sources,
                "poll_interval_sec": config.poll_interval_sec,
                "alert_chats": len(config.alert_chat_ids),
                "db_path": config.sqlite_path,
                "dry_run": config.dry_run,
                "market_providers": [provider.name for provider in providers],
                "filters_version": filter_store.current.version,
            },
        )

    async def post_shutdown(application):
        for job in application.bot_data.get("jobs", []):
            job.schedule_removal()
        stream = application.bot_data.get("stream")
        if stream:
            stream.stop()
        stream_task = application.bot_data.get("stream_task")
        if stream_task:
            stream_task.cancel()
        receiver = application.bot_data.get("webhook")
        if receiver:
            await receiver.stop()
        app_ctx = application.bot_data.get("app_ctx")
        if app_ctx:
            await app_ctx.session.close()
            await app_ctx.db.close()
            logger.info("bot_shutdown")

    application = (
        ApplicationBuilder()
        .token(config.bot_token)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    register_handlers(application)
    application.run_polling(stop_signals=(signal.SIGINT, signal.SIGTERM))


if __name__ == "__main__":
    main()
