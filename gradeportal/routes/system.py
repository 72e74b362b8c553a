from __future__ import annotations

from fastapi import APIRouter

from .. import config

router = APIRouter(tags=["System"])


@router.get("/health")
def health():
    return {"status": "ok", "storage": config.storage_backend()}
