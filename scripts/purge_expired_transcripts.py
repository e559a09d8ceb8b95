"""
Delete chat transcripts older than the retention window.

Firestore removes them through the TTL policy on `expireAt`; run this from
cron / Cloud Scheduler where that policy is unavailable (e.g. the emulator).
"""
from app.services.session_store import build_store
from app.utils.config import Settings, load_config
from app.utils.logger import logger, setup_logging


def purge_expired_transcripts():
    settings = Settings.from_config(load_config())
    setup_logging(settings.logging)

    store = build_store(settings)
    removed = store.purge_expired()
    logger.info(f"✅ Purged {removed} expired transcripts from '{settings.store_collection}'")
    return removed


if __name__ == "__main__":
    purge_expired_transcripts()
