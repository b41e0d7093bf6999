import logging

LOGGER_NAME = "rootguard"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s :: %(message)s"

logger = logging.getLogger(LOGGER_NAME)


def configure_logging(level: str = "INFO") -> logging.Logger:
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        numeric = logging.INFO

    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(numeric)
    logger.propagate = False
    return logger


# Audit logger: denials are always WARNING so they survive an INFO threshold
class AuditLogger:
    @staticmethod
    def deny(msg: str):
        logger.warning(f"[AUDIT_DENY] {msg}")

    @staticmethod
    def warn(msg: str):
        logger.warning(f"[AUDIT_WARN] {msg}")

    @staticmethod
    def debug(msg: str):
        logger.debug(f"[AUDIT_DEBUG] {msg}")

    @staticmethod
    def error(msg: str):
        logger.error(f"[AUDIT_ERROR] {msg}")

    @staticmethod
    def info(msg: str):
        logger.info(f"[AUDIT_INFO] {msg}")


audit_logger = AuditLogger()


def log_access_denied(path: str, reason: str):
    audit_logger.deny(f"{reason}: {path}")


def log_trash_move(source: str, location: str):
    audit_logger.info(f"Moved to trash: {source} -> {location}")


def log_trash_restore(location: str, target: str):
    audit_logger.info(f"Restored from trash: {location} -> {target}")


def log_trash_emptied(removed: int, failed: int):
    if failed:
        audit_logger.warn(f"Trash emptied with failures. Removed: {removed}. Failed: {failed}")
    else:
        audit_logger.info(f"Trash emptied. Removed: {removed}")


def log_backup(source: str, location: str):
    audit_logger.info(f"Backup created: {source} -> {location}")


def log_archive(kind: str, source: str, destination: str, entries: int):
    audit_logger.info(f"{kind} {source} -> {destination} ({entries} entries)")
