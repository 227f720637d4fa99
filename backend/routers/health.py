from fastapi import APIRouter, Depends

from routers.cards import get_sync
from sync_engine.controller import SyncController

router = APIRouter(prefix='/api')


@router.get('/health')
def health(sync: SyncController = Depends(get_sync)):
    return {"ok": True, "state": sync.state.value, "passes": sync.passes, "dropped": sync.dropped}
