import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from routers.cards import get_sync
from sync_engine.controller import SyncController

logger = logging.getLogger(__name__)

router = APIRouter()

MANUAL_SYNC = '__manual_sync'
MANUAL_PING = '__manual_ping'


@router.post('/__vscode_notify')
def editor_notify(body: Any = Body(None), sync: SyncController = Depends(get_sync)):
    path = body.get('path') if isinstance(body, dict) else None
    logger.info("editor notify: %s", body)
    if path == MANUAL_SYNC:
        try:
            sync.sync_now()
        except Exception:
            logger.exception("manual sync failed")
    return {"ok": True}
