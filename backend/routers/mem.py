from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from services.memory_service import MemoryService


def get_memory() -> MemoryService:
    from main import memory_service

    return memory_service


router = APIRouter(prefix='/api/mem')


@router.post('/add')
def add_memory(body: dict, mem: MemoryService = Depends(get_memory)):
    text = body.get('text')
    if not text or not isinstance(text, str):
        raise HTTPException(status_code=400, detail='text required')
    return mem.add_text(text, body.get('source') or 'api', body.get('tags') or [])


@router.post('/addBatch')
def add_batch(body: Any = Body(None), mem: MemoryService = Depends(get_memory)):
    items = body.get('items', []) if isinstance(body, dict) else []
    if not isinstance(items, list):
        raise HTTPException(status_code=400, detail='items must be a list')
    items = [i for i in items if isinstance(i, dict)]
    mem.add_texts(items)
    return {"ok": True, "added": len(items)}


@router.get('/search')
def search(q: str = '', top: int = 5, mem: MemoryService = Depends(get_memory)):
    return mem.search(q, top)
