import base64
import binascii
import logging
import re
import time
from io import BytesIO
from typing import Any, Dict, List, Optional, Union

from google import genai
from google.genai import types
from PIL import Image, UnidentifiedImageError

from ..config import Settings
from ..errors import ProviderError

logger = logging.getLogger(__name__)

_client: Optional[Any] = None

_DATA_URL = re.compile(r"^data:image/\w+;base64,")

# request option name -> GenerateContentConfig field
_TEXT_OPTIONS = {
    "temperature": "temperature",
    "maxOutputTokens": "max_output_tokens",
    "topP": "top_p",
    "topK": "top_k",
}


def get_client(settings: Settings):
    global _client
    if _client is None:
        _client = genai.Client(
            vertexai=True, project=settings.project_id, location=settings.location
        )
    return _client


def _text_config(options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    config = {}
    for key, field in _TEXT_OPTIONS.items():
        if options and options.get(key) is not None:
            config[field] = options[key]
    return config


def generate_text(settings: Settings, prompt: str, options: Optional[Dict[str, Any]] = None) -> str:
    """Run a single-turn prompt through Gemini and return the plain text."""
    start = time.time()
    try:
        resp = get_client(settings).models.generate_content(
            model=settings.text_model,
            contents=[types.Content(role="user", parts=[types.Part.from_text(text=prompt)])],
            config=_text_config(options) or None,
        )
    except Exception as e:
        raise ProviderError(f"text generation failed: {e}") from e
    text = (resp.text or "").strip()
    if not text:
        raise ProviderError("No text returned from Vertex AI")
    logger.info(
        "generate_text model=%s chars=%d latency_ms=%d",
        settings.text_model,
        len(text),
        int((time.time() - start) * 1000),
    )
    return text


def to_png(payload) -> bytes:
    """Normalise an image payload (raw bytes or base64 / data URL string) to PNG bytes."""
    if isinstance(payload, str):
        try:
            payload = base64.b64decode(_DATA_URL.sub("", payload), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ProviderError(f"image payload is not valid base64: {e}") from e
    if not payload:
        raise ProviderError("No image returned from Vertex AI")
    try:
        image = Image.open(BytesIO(payload))
        if image.format == "PNG":
            return bytes(payload)
        out = BytesIO()
        image.save(out, format="PNG")
    except (UnidentifiedImageError, OSError) as e:
        raise ProviderError(f"image payload could not be decoded: {e}") from e
    return out.getvalue()


def generate_image(
    settings: Settings, prompt: str, aspect_ratio: str = "1:1", sample_count: int = 1
) -> List[Union[bytes, str]]:
    """Generate ``sample_count`` images with Imagen.

    Each entry is PNG bytes, or the ``gs://`` URI when the model wrote the
    image to storage itself instead of returning it inline.
    """
    start = time.time()
    try:
        resp = get_client(settings).models.generate_images(
            model=settings.image_model,
            prompt=prompt,
            config=types.GenerateImagesConfig(
                number_of_images=sample_count,
                aspect_ratio=aspect_ratio,
            ),
        )
    except Exception as e:
        raise ProviderError(f"image generation failed: {e}") from e

    images = []
    for generated in resp.generated_images or []:
        image = getattr(generated, "image", None)
        data = getattr(image, "image_bytes", None) if image is not None else None
        uri = getattr(image, "gcs_uri", None) if image is not None else None
        if data:
            images.append(to_png(data))
        elif uri:
            images.append(uri)
    if not images:
        reasons = [
            g.rai_filtered_reason
            for g in (resp.generated_images or [])
            if getattr(g, "rai_filtered_reason", None)
        ]
        detail = f" ({'; '.join(reasons)})" if reasons else ""
        raise ProviderError(f"No image returned from Vertex AI{detail}")
    logger.info(
        "generate_image model=%s images=%d latency_ms=%d",
        settings.image_model,
        len(images),
        int((time.time() - start) * 1000),
    )
    return images
