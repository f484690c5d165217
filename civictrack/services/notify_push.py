# civictrack/services/notify_push.py
import json
import logging
from pywebpush import webpush, WebPushException
from civictrack.core.config import settings

logger = logging.getLogger(__name__)

VAPID_PRIVATE = settings.vapid_private_key
VAPID_PUBLIC = settings.vapid_public_key
VAPID_CLAIMS = {"sub": settings.vapid_sub}

def send_push(subscription: dict, payload: dict) -> bool:
    if not VAPID_PRIVATE or not VAPID_PUBLIC:
        return False
    try:
        webpush(
            subscription_info=subscription,
            data=json.dumps(payload),
            vapid_private_key=VAPID_PRIVATE,
            vapid_claims=dict(VAPID_CLAIMS),
        )
        return True
    except WebPushException as e:
        logger.warning("push to %s failed: %s", subscription.get("endpoint"), e)
        return False
