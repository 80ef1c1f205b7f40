"""
Retention sweep for generated files.

Deletes every object under a namespace prefix whose creation time is older
than the configured keep duration. Age is measured from the creation
timestamp (GCS ``timeCreated``); ``updated`` moves on any metadata write and
could postpone deletion forever.
"""
import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from ..errors import ConfigurationError, ListFailure, ObjectNotFound
from .storage import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetentionPolicy:
    namespace_prefix: str
    keep_duration: timedelta

    def __post_init__(self):
        if not isinstance(self.namespace_prefix, str) or not self.namespace_prefix:
            raise ConfigurationError("namespace prefix must be a non-empty string")
        if not isinstance(self.keep_duration, timedelta) or self.keep_duration <= timedelta(0):
            raise ConfigurationError("keep duration must be a positive duration")

    @classmethod
    def from_days(cls, prefix: str, days: int) -> "RetentionPolicy":
        if isinstance(days, bool) or not isinstance(days, int):
            raise ConfigurationError(f"keep days must be an integer, got {days!r}")
        if days <= 0:
            raise ConfigurationError(f"keep days must be positive, got {days}")
        return cls(namespace_prefix=prefix, keep_duration=timedelta(days=days))


@dataclass(frozen=True)
class SweepFailure:
    key: str
    reason: str


@dataclass
class SweepResult:
    scanned: int = 0
    deleted: int = 0
    already_gone: int = 0
    failures: List[SweepFailure] = field(default_factory=list)
    aborted: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sweep(
    store: ObjectStore,
    policy: RetentionPolicy,
    *,
    now: Optional[Callable[[], datetime]] = None,
    timeout_s: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> SweepResult:
    """Delete objects under ``policy.namespace_prefix`` older than the keep duration.

    An object exactly ``keep_duration`` old is kept. Per-object errors are
    collected in ``SweepResult.failures`` and the sweep moves on; a key that
    disappears underneath us (another sweep got there first) counts as
    ``already_gone``. Only a failed listing aborts the whole sweep, as
    ``ListFailure``.

    ``timeout_s`` and ``cancel_event`` stop the loop between objects; the
    partial result is returned with ``aborted`` set.
    """
    started = _utcnow() if now is None else now()
    deadline = time.monotonic() + timeout_s if timeout_s is not None else None
    prefix = policy.namespace_prefix

    logger.info(
        "Sweep started: prefix=%s keep=%s", prefix, policy.keep_duration
    )
    try:
        objects = store.list_by_prefix(prefix)
    except Exception as e:
        logger.error("Sweep aborted, listing %s failed: %s", prefix, e)
        raise ListFailure(prefix, str(e)) from e

    result = SweepResult()
    for obj in objects:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("Sweep cancelled after %d objects", result.scanned)
            result.aborted = True
            break
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning("Sweep timed out after %d objects", result.scanned)
            result.aborted = True
            break
        # store listings may be looser than a strict prefix match
        if not obj.key.startswith(prefix):
            continue

        result.scanned += 1
        created_at = obj.created_at
        if created_at is None:
            try:
                created_at = store.get_metadata(obj.key).created_at
            except ObjectNotFound:
                result.already_gone += 1
                continue
            except Exception as e:
                logger.warning("Could not read metadata for %s: %s", obj.key, e)
                result.failures.append(SweepFailure(obj.key, f"metadata: {e}"))
                continue
            if created_at is None:
                result.failures.append(SweepFailure(obj.key, "no creation timestamp"))
                continue

        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        if started - created_at <= policy.keep_duration:
            continue

        try:
            removed = store.delete(obj.key)
        except ObjectNotFound:
            removed = False
        except Exception as e:
            logger.warning("Failed to delete %s: %s", obj.key, e)
            result.failures.append(SweepFailure(obj.key, str(e)))
            continue
        if removed:
            logger.info("Deleted old file: %s", obj.key)
            result.deleted += 1
        else:
            result.already_gone += 1

    logger.info(
        "Sweep done: scanned=%d deleted=%d already_gone=%d failures=%d aborted=%s",
        result.scanned,
        result.deleted,
        result.already_gone,
        len(result.failures),
        result.aborted,
    )
    return result
