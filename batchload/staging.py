import time
from typing import Optional

from .common import PrintLogger
from .storage.filesystem import Filesystem

TEMP_DIR_NAME = "BatchLoadsTemp"


class Staging:
    """Helpers for managing temp-file prefixes under the configured temp location."""

    @staticmethod
    def root(temp_location: str) -> str:
        return f"{temp_location.rstrip('/')}/{TEMP_DIR_NAME}"

    @staticmethod
    def temp_file_prefix(temp_location: str, job_id_token: str) -> str:
        return f"{Staging.root(temp_location)}/{job_id_token}"

    @staticmethod
    def cleanup_prefix(prefix: str, logger: PrintLogger) -> None:
        """Remove one execution's temp files; failures are only logged."""
        try:
            fs = Filesystem.for_root(prefix)
            if fs.exists(prefix):
                fs.delete(prefix, recursive=True)
                logger.info("temp_prefix_deleted", path=prefix)
        except Exception as exc:
            logger.warn("temp_prefix_cleanup_failed", path=prefix, err=str(exc))

    @staticmethod
    def ttl_cleanup(
        temp_location: str,
        ttl_hours: int,
        logger: PrintLogger,
        now_epoch_ms: Optional[int] = None,
    ) -> int:
        """Remove temp prefixes left behind by earlier executions that are older than ttl."""
        removed = 0
        try:
            root = Staging.root(temp_location)
            fs = Filesystem.for_root(root)
            if not fs.exists(root):
                return 0
            ttl_ms = int(ttl_hours) * 3600 * 1000
            now_ms = now_epoch_ms or int(time.time() * 1000)
            for name in fs.listdir(root):
                path = fs.join(root, name)
                age = now_ms - fs.modified_ms(path)
                if age > ttl_ms:
                    logger.info("staging_ttl_delete", path=path, age_ms=age)
                    fs.delete(path, recursive=True)
                    removed += 1
        except Exception as exc:
            logger.warn("staging_ttl_cleanup_failed", err=str(exc))
        return removed
