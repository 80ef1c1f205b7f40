from fastapi import APIRouter

from .v1 import cleanup, generate, images

router = APIRouter()

router.include_router(generate.router, prefix="", tags=["generate"])
router.include_router(images.router, prefix="", tags=["images"])
router.include_router(cleanup.router, prefix="", tags=["cleanup"])
