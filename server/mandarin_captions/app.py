"""FastAPI 应用工厂 + lifespan。"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mandarin_captions.config import Settings, load_settings
from mandarin_captions.dictionary import DictionaryService
from mandarin_captions.errors import BadRequestError, InvalidImageError, ServiceError
from mandarin_captions.models import (
    AnalyzeResponse,
    DictionaryEntry,
    RateCaptionRequest,
    UsageResponse,
)
from mandarin_captions.pinyin import has_chinese
from mandarin_captions.pipeline.captioner import Captioner
from mandarin_captions.pipeline.client import OpenRouterClient
from mandarin_captions.store import UsageStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """启动/关闭生命周期管理。"""
    settings: Settings = app.state.settings

    # 1. 日志
    logging.basicConfig(
        level=getattr(logging, settings.server.log_level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    # 2. 用量统计 + 缓存
    store = UsageStore(settings.cache.stats_file, ttl_hours=settings.cache.ttl_hours)
    store.load()

    # 3. 上游客户端
    client = OpenRouterClient(settings.upstream, settings.pricing, usage=store)
    await client.start()
    if not client.key_count:
        logger.warning("No upstream API keys configured; set MANDARIN_UPSTREAM__API_KEYS")

    # 4. 业务服务
    app.state.store = store
    app.state.client = client
    app.state.captioner = Captioner(client, store, settings)
    app.state.dictionary = DictionaryService(client, settings.dictionary)
    logger.info("Server ready with %d API key(s)", client.key_count)

    yield

    # Shutdown (reverse order)
    await client.close()
    store.save()


async def _service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(settings: Settings | None = None) -> FastAPI:
    """创建 FastAPI 应用。"""
    if settings is None:
        settings = load_settings()

    app = FastAPI(title="Mandarin Photo Captions", lifespan=lifespan)
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ServiceError, _service_error_handler)

    @app.get("/health")
    async def health():
        client: OpenRouterClient | None = getattr(app.state, "client", None)
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "upstreamKeys": client.key_count if client else 0,
        }

    @app.post("/api/analyze-image", response_model=AnalyzeResponse)
    async def analyze_image(image: UploadFile | None = File(default=None)):
        if image is None:
            raise InvalidImageError("No image file provided")
        content_type = image.content_type or ""
        if not content_type.startswith("image/"):
            raise InvalidImageError("Invalid file type. Please upload an image file.")

        max_bytes = settings.upload.max_bytes
        data = await image.read(max_bytes + 1)
        if not data:
            raise InvalidImageError("Empty file. Please upload a valid image.")
        if len(data) > max_bytes:
            raise InvalidImageError(
                f"Image is larger than {max_bytes // 1024} KB.", status_code=413
            )

        logger.info("Processing image %s (%d bytes, %s)", image.filename, len(data), content_type)
        captioner: Captioner = app.state.captioner
        return await captioner.process(data, content_type)

    @app.post("/api/rate-caption")
    async def rate_caption(body: RateCaptionRequest):
        store: UsageStore = app.state.store
        store.add_rating(body.caption_id, body.rating, body.feedback)
        logger.info("Caption rating: %d/5 for caption %s", body.rating, body.caption_id)
        if body.feedback:
            logger.info("Feedback: %s", body.feedback)
        return {"success": True, "message": "Rating recorded"}

    @app.get("/api/usage", response_model=UsageResponse)
    async def usage():
        store: UsageStore = app.state.store
        client: OpenRouterClient = app.state.client
        return store.snapshot(active_keys=client.key_count)

    @app.post("/api/clear-cache")
    async def clear_cache():
        store: UsageStore = app.state.store
        cleared = store.clear_cache()
        logger.info("Cleared %d cached result(s)", cleared)
        return {"success": True, "message": "Cache cleared", "cleared": cleared}

    @app.get("/api/dictionary/{word}", response_model=DictionaryEntry)
    async def dictionary(word: str):
        if not has_chinese(word):
            raise BadRequestError("Word must contain Chinese characters.")
        service: DictionaryService = app.state.dictionary
        return await service.lookup(word)

    return app
