import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from routers.cards import get_sync
from sync_engine.controller import SyncController

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get('/story')
def get_story(sync: SyncController = Depends(get_sync)):
    return {"text": sync.read_story()}


@router.post('/story')
def post_story(body: Any = Body(None), sync: SyncController = Depends(get_sync)):
    text = body.get('text') if isinstance(body, dict) else None
    if not isinstance(text, str):
        return JSONResponse(status_code=400, content={"ok": False, "error": "text must be a string"})
    try:
        cards = sync.write_story(text)
    except Exception as e:
        logger.exception("error saving story")
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
    return {"ok": True, "cards": len(cards)}
