import logging

import notifiers.logging

from ghsync.config import SETTINGS, Settings


def get_log_handlers(logger: logging.Logger, settings: Settings = SETTINGS):
    logger.setLevel(settings.OVERRIDE_LOGGING)
    if settings.TELEGRAM_TOKEN is None:
        return []

    existing = [
        h for h in logger.handlers if isinstance(h, notifiers.logging.NotificationHandler)
    ]
    if existing:
        return existing

    handler = notifiers.logging.NotificationHandler(
        "telegram",
        defaults={
            "token": settings.TELEGRAM_TOKEN,
            "chat_id": settings.TELEGRAM_CHAT_ID,
        },
    )
    handler.setLevel(logging.WARNING)
    logger.addHandler(handler)
    return [handler]
