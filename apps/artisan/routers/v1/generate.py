import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException

from ...config import Settings
from ...deps import get_settings, get_store
from ...errors import ProviderError, StoreError
from ...services import llm
from ...services.storage import ObjectStore, gcs_uri_to_url

logger = logging.getLogger(__name__)

router = APIRouter()

ASPECT_RATIOS = ("1:1", "3:4", "4:3", "9:16", "16:9")
MAX_SAMPLES = 4


def _prompt(payload: dict) -> str:
    prompt = payload.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise HTTPException(status_code=400, detail="Missing prompt")
    return prompt.strip()


@router.post("/generate-text")
def generate_text(payload: dict, settings: Settings = Depends(get_settings)):
    prompt = _prompt(payload)
    options = payload.get("options") or {}
    if not isinstance(options, dict):
        raise HTTPException(status_code=400, detail="options must be an object")
    try:
        text = llm.generate_text(settings, prompt, options)
    except ProviderError as e:
        logger.error("generate-text error: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    return {"success": True, "text": text, "model": settings.text_model}


@router.post("/generate-image")
def generate_image(
    payload: dict,
    settings: Settings = Depends(get_settings),
    store: ObjectStore = Depends(get_store),
):
    prompt = _prompt(payload)
    aspect_ratio = payload.get("aspectRatio") or "1:1"
    if aspect_ratio not in ASPECT_RATIOS:
        raise HTTPException(
            status_code=400, detail=f"aspectRatio must be one of {', '.join(ASPECT_RATIOS)}"
        )
    sample_count = payload.get("sampleCount", 1)
    if isinstance(sample_count, bool) or not isinstance(sample_count, int) or not 1 <= sample_count <= MAX_SAMPLES:
        raise HTTPException(status_code=400, detail=f"sampleCount must be between 1 and {MAX_SAMPLES}")

    try:
        images = llm.generate_image(settings, prompt, aspect_ratio, sample_count)
    except ProviderError as e:
        logger.error("generate-image error: %s", e)
        raise HTTPException(status_code=502, detail=str(e))

    keys, urls = [], []
    try:
        for data in images:
            if isinstance(data, str):
                # already in storage, written by the model
                urls.append(gcs_uri_to_url(data))
                continue
            key = f"{settings.generated_prefix}imagen-{uuid.uuid4()}.png"
            store.save(key, data, "image/png")
            urls.append(store.make_public(key))
            keys.append(key)
    except StoreError as e:
        logger.error("upload of generated image failed: %s", e)
        raise HTTPException(status_code=503, detail=f"Storage error: {e}")
    return {"success": True, "url": urls[0], "urls": urls, "keys": keys}
