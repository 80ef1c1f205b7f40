"""
Run one retention sweep outside the web process (cron, Cloud Scheduler job).
Reads the same environment / .env as the API.
"""
import argparse
import json
import logging
from typing import Optional, Sequence

from .config import configure_logging, load_settings
from .errors import ConfigurationError, ListFailure
from .services.retention import RetentionPolicy, sweep
from .services.storage import GCSObjectStore

logger = logging.getLogger(__name__)


def main(argv: Optional[Sequence[str]] = None, store=None) -> int:
    parser = argparse.ArgumentParser(description="Delete generated files older than KEEP_DAYS")
    parser.add_argument("--keep-days", type=int, default=None, help="Override KEEP_DAYS")
    parser.add_argument("--prefix", default=None, help="Override GENERATED_PREFIX")
    parser.add_argument("--timeout", type=float, default=None, help="Stop after N seconds")
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
        policy = RetentionPolicy.from_days(
            args.prefix if args.prefix is not None else settings.generated_prefix,
            args.keep_days if args.keep_days is not None else settings.keep_days,
        )
    except ConfigurationError as e:
        parser.error(str(e))

    configure_logging(settings.log_level)
    store = store or GCSObjectStore(settings.bucket_name)
    try:
        result = sweep(
            store,
            policy,
            timeout_s=args.timeout if args.timeout is not None else settings.sweep_timeout_s,
        )
    except ListFailure as e:
        logger.error("%s", e)
        return 2

    print(json.dumps(result.to_dict(), ensure_ascii=False))
    return 1 if result.failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
