"""
Service wiring for the web layer.

Routes receive the workflow and uploader through these dependencies, so
tests can swap them with app.dependency_overrides.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.listings import (
    ListingBackend,
    ListingWorkflow,
    LocalBlobStore,
    MediaUploader,
    NullNotifier,
    RetryPolicy,
    SupabaseBlobStore,
    SupabaseListingStore,
    TelegramNotifier,
    create_supabase_client,
    get_listing_store,
)
from utils.config import Config
from web.auth import reset_token_resolver


logger = logging.getLogger(__name__)

_workflow: Optional[ListingWorkflow] = None
_uploader: Optional[MediaUploader] = None


def build_store(config: Config) -> ListingBackend:
    if config.uses_supabase:
        client = create_supabase_client(config.supabase_url, config.supabase_key)
        if client is None:
            raise RuntimeError("STORE_BACKEND=supabase but SUPABASE_URL / key are not set")
        logger.info("Using Supabase listing store at %s", config.supabase_url)
        return SupabaseListingStore(client)

    logger.info("Using file-backed listing store at %s", config.listings_path)
    return get_listing_store(config.listings_path)


def build_workflow(config: Config) -> ListingWorkflow:
    if config.telegram_enabled:
        notifier = TelegramNotifier(
            config.telegram_bot_token, config.telegram_chat_id, timeout=config.request_timeout
        )
    else:
        notifier = NullNotifier()
    return ListingWorkflow(build_store(config), notifier)


def build_uploader(config: Config) -> MediaUploader:
    if config.uses_supabase and config.supabase_url and config.supabase_key:
        store = SupabaseBlobStore(
            config.supabase_url,
            config.supabase_key,
            config.storage_bucket,
            timeout=config.request_timeout,
        )
    else:
        store = LocalBlobStore(config.uploads_dir)

    retry = RetryPolicy(
        max_attempts=config.upload_max_attempts,
        base_delay=config.upload_base_delay,
        max_delay=config.upload_max_delay,
    )
    return MediaUploader(store, retry)


def get_workflow() -> ListingWorkflow:
    global _workflow
    if _workflow is None:
        _workflow = build_workflow(Config.load())
    return _workflow


def get_uploader() -> MediaUploader:
    global _uploader
    if _uploader is None:
        _uploader = build_uploader(Config.load())
    return _uploader


def reset_services() -> None:
    """Drop cached services (for testing)."""
    global _workflow, _uploader
    _workflow = None
    _uploader = None
    reset_token_resolver()
