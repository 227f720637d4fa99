import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

BACKEND_DIR = Path(__file__).resolve().parent
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from routers import cards, health, mem, notify, story
from services.config_service import load_settings
from services.logging_setup import setup_logging
from services.memory_service import MemoryService
from storage.fs_store import FSStore
from sync_engine.controller import SyncController

settings = load_settings()
setup_logging(settings.log_level)

store = FSStore(settings.data_dir, settings.outline_file, settings.index_file, settings.narrative_file)
memory_service = MemoryService(settings.memory_path)
sync_controller = SyncController(store, memory_service, settings)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    sync_controller.bootstrap()
    watcher = sync_controller.make_watcher() if settings.watch else None
    if watcher:
        watcher.start()
    try:
        yield
    finally:
        if watcher:
            watcher.stop()
        sync_controller.close()


frontend_port = os.getenv('STORYSYNC_FRONTEND_PORT', '5173')
allowed_origins = [
    f'http://127.0.0.1:{frontend_port}',
    f'http://localhost:{frontend_port}',
]

app = FastAPI(title='Story Sync API', lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(health.router)
app.include_router(cards.router)
app.include_router(story.router)
app.include_router(mem.router)
app.include_router(notify.router)
