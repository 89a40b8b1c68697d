"""
Service wiring shared by the API endpoints.

The container is built once per application and kept on ``app.state``.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..core.config import Settings, settings as default_settings
from ..core.locks import DocumentLockRegistry
from ..services.document_service import DocumentService
from ..services.notification_service import NotificationDispatcher
from ..services.signature.certificate_extractor import CertificateExtractor
from ..services.signature.crypto_context import CryptoContext
from ..services.signature.pdf_signing_engine import PdfSigningEngine
from ..services.signing_service import SigningOrchestrator
from ..services.verification_service import VerificationEngine
from ..services.workflow_service import WorkflowEngine
from ..stores.base import BlobStore, EntityStore, NotificationSink
from ..stores.filesystem import FileSystemBlobStore
from ..stores.memory import InMemoryBlobStore, InMemoryEntityStore
from ..stores.mongo import MongoEntityStore
from ..stores.notifications import LoggingNotificationSink, WebhookNotificationSink

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    store: EntityStore
    blobs: BlobStore
    dispatcher: NotificationDispatcher
    documents: DocumentService
    workflows: WorkflowEngine
    signing: SigningOrchestrator
    verification: VerificationEngine


def build_entity_store(config: Settings) -> EntityStore:
    if config.ENTITY_STORE == "mongo":
        return MongoEntityStore()
    return InMemoryEntityStore()


def build_blob_store(config: Settings) -> BlobStore:
    if config.BLOB_STORE == "filesystem":
        return FileSystemBlobStore(config.DOCUMENT_STORAGE_PATH)
    return InMemoryBlobStore()


def build_notification_sink(config: Settings) -> NotificationSink:
    if config.NOTIFICATION_WEBHOOK_URL:
        return WebhookNotificationSink(
            config.NOTIFICATION_WEBHOOK_URL,
            config.SIGNING_BASE_URL,
            timeout=config.NOTIFICATION_TIMEOUT_SECONDS,
        )
    return LoggingNotificationSink()


def build_container(
    config: Settings = None,
    store: Optional[EntityStore] = None,
    blobs: Optional[BlobStore] = None,
    sink: Optional[NotificationSink] = None,
    context: Optional[CryptoContext] = None,
) -> ServiceContainer:
    """Wire every service; explicit arguments override the configured adapters."""
    config = config if config is not None else default_settings
    store = store if store is not None else build_entity_store(config)
    blobs = blobs if blobs is not None else build_blob_store(config)
    dispatcher = NotificationDispatcher(sink if sink is not None else build_notification_sink(config))
    context = context if context is not None else CryptoContext(digest_algorithm=config.SIGNING_DIGEST_ALGORITHM)

    locks = DocumentLockRegistry()
    engine = PdfSigningEngine(context)
    extractor = CertificateExtractor(context)
    workflows = WorkflowEngine(store, dispatcher, locks, clock=context.clock)

    logger.info(f"Services wired: entity store {type(store).__name__}, blob store {type(blobs).__name__}")
    return ServiceContainer(
        store=store,
        blobs=blobs,
        dispatcher=dispatcher,
        documents=DocumentService(store, blobs, config.MAX_DOCUMENT_SIZE_MB),
        workflows=workflows,
        signing=SigningOrchestrator.with_default_strategies(
            store, blobs, workflows, locks, extractor, engine, clock=context.clock
        ),
        verification=VerificationEngine(store, blobs, engine),
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container
