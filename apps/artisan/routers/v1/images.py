from fastapi import APIRouter, Depends, HTTPException

from ...config import Settings
from ...deps import get_settings, get_store
from ...errors import StoreError
from ...services.storage import ObjectStore

router = APIRouter()


@router.get("/list-images")
def list_images(settings: Settings = Depends(get_settings), store: ObjectStore = Depends(get_store)):
    try:
        objects = store.list_by_prefix(settings.generated_prefix)
    except StoreError as e:
        raise HTTPException(status_code=503, detail=f"Storage error: {e}")
    items = [
        {
            "name": o.key,
            "url": store.public_url(o.key),
            "created_at": o.created_at.isoformat() if o.created_at else None,
        }
        for o in objects
    ]
    return {"items": items}
