import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from sync_engine.conflicts import CardLimitError, ConflictError, WriteRejected
from sync_engine.controller import SyncController

logger = logging.getLogger(__name__)


def get_sync() -> SyncController:
    from main import sync_controller

    return sync_controller


router = APIRouter(prefix="/api")


@router.get('/cards')
def list_cards(sync: SyncController = Depends(get_sync)):
    return [c.to_dict() for c in sync.read_cards()]


@router.post('/cards')
def save_cards(payload: Any = Body(None), sync: SyncController = Depends(get_sync)):
    try:
        sync.write_cards(payload)
    except ConflictError as e:
        return JSONResponse(status_code=409, content={"ok": False, "conflicts": [c.to_dict() for c in e.conflicts]})
    except CardLimitError as e:
        return JSONResponse(status_code=400, content={"ok": False, "error": str(e), "limit": e.limit})
    except WriteRejected as e:
        return JSONResponse(status_code=400, content={"ok": False, "error": str(e)})
    except Exception as e:
        logger.exception("error saving cards")
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
    return {"ok": True}
