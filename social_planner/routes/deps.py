"""
Request-scoped providers for the publishing pipeline.

Each collaborator is its own dependency so tests can swap it through
app.dependency_overrides.
"""
from typing import Dict

from fastapi import Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..notifier import Notifier, get_notifier
from ..storage import ObjectStorage, get_storage
from ..worker.clock import Clock, business_now
from ..worker.lifecycle import PostLifecycle
from ..worker.platform_upload import PlatformPublisher, get_platform_publishers
from ..worker.publisher import PublishOrchestrator


def get_publishers() -> Dict[str, PlatformPublisher]:
    return get_platform_publishers()


def get_object_storage() -> ObjectStorage:
    return get_storage()


def get_mail_notifier() -> Notifier:
    return get_notifier()


def get_clock() -> Clock:
    return business_now


def get_orchestrator(
    db: Session = Depends(get_db),
    publishers: Dict[str, PlatformPublisher] = Depends(get_publishers),
    storage: ObjectStorage = Depends(get_object_storage),
    notifier: Notifier = Depends(get_mail_notifier),
) -> PublishOrchestrator:
    return PublishOrchestrator(db, publishers, storage, notifier)


def get_lifecycle(
    db: Session = Depends(get_db),
    orchestrator: PublishOrchestrator = Depends(get_orchestrator),
    storage: ObjectStorage = Depends(get_object_storage),
    notifier: Notifier = Depends(get_mail_notifier),
    clock: Clock = Depends(get_clock),
) -> PostLifecycle:
    return PostLifecycle(db, orchestrator, storage, notifier, clock=clock)
