"""Application lifecycle management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from skillset_service.clients.email_client import EmailClient
from skillset_service.clients.price_client import PriceClient
from skillset_service.clients.upload_url_signer import UploadUrlSigner, ensure_signing_key
from skillset_service.config import get_settings
from skillset_service.core.state import init_app_state
from skillset_service.logging import get_logger, setup_logging
from skillset_service.services.auth_manager import AuthManager
from skillset_service.services.object_gateway import ObjectGateway
from skillset_service.services.session_manager import SessionManager
from skillset_service.services.skillset_store import SkillsetStore
from skillset_service.services.task_catalog import TaskCatalog, load_seed_file
from skillset_service.services.upload_workflow import UploadWorkflow

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    # === STARTUP ===
    settings = get_settings()

    setup_logging(
        settings.logging.level,
        settings.service.name,
        settings.logging.directory,
        retention_days=settings.logging.retention_days,
    )
    logger = get_logger(__name__)

    state = init_app_state()
    state.session_cookie_name = settings.auth.session_cookie_name
    state.session_cookie_max_age = settings.auth.session_ttl_seconds
    state.session_cookie_secure = settings.auth.cookie_secure

    db_path = settings.database.path
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    store = SkillsetStore(db_path=db_path)
    state.store = store

    # Sessions and accounts
    sessions = SessionManager(store=store, ttl_seconds=settings.auth.session_ttl_seconds)
    sessions.purge_expired()
    state.session_manager = sessions
    auth_manager = AuthManager(
        store=store,
        sessions=sessions,
        password_hash_rounds=settings.auth.password_hash_rounds,
        admin_usernames=settings.auth.admin_usernames,
        max_username_length=settings.limits.max_username_length,
        min_password_length=settings.limits.min_password_length,
        max_password_length=settings.limits.max_password_length,
    )
    auth_manager.promote_configured_admins()
    state.auth_manager = auth_manager

    # Task catalog, seeded from file when configured
    task_catalog = TaskCatalog(store=store)
    if settings.seed is not None:
        task_catalog.seed_tasks(load_seed_file(Path(settings.seed.tasks_path)))
    state.task_catalog = task_catalog

    # Object storage (signing key is generated on first start)
    ensure_signing_key(settings.storage.signing_key_path)
    signer = UploadUrlSigner(
        private_key_path=settings.storage.signing_key_path,
        key_id=settings.service.name,
    )
    object_gateway = ObjectGateway(
        store=store,
        signer=signer,
        root_path=settings.storage.root_path,
        namespace=settings.storage.namespace,
        public_base_url=settings.storage.public_base_url,
        upload_url_ttl_seconds=settings.storage.upload_url_ttl_seconds,
        max_object_size=settings.storage.max_object_size,
    )
    state.object_gateway = object_gateway

    state.upload_workflow = UploadWorkflow(store=store, object_gateway=object_gateway)

    # External integrations
    email_client = EmailClient(
        base_url=settings.contact.base_url,
        send_path=settings.contact.send_path,
        api_key=settings.contact.api_key,
        from_email=settings.contact.from_email,
        to_email=settings.contact.to_email,
        timeout_seconds=settings.contact.timeout_seconds,
    )
    state.email_client = email_client

    price_client = PriceClient(
        base_url=settings.price.base_url,
        token_address=settings.price.token_address,
        timeout_seconds=settings.price.timeout_seconds,
    )
    state.price_client = price_client

    logger.info(
        "Service starting",
        extra={
            "service": settings.service.name,
            "version": settings.service.version,
            "port": settings.server.port,
            "db_path": db_path,
            "storage_root": settings.storage.root_path,
            "total_tasks": store.count_tasks(),
        },
    )

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Service shutting down", extra={"uptime_seconds": state.uptime_seconds})

    await email_client.close()
    await price_client.close()
    store.close()
