"""python -m mandarin_captions：uvicorn 启动。"""

from __future__ import annotations

import uvicorn

from mandarin_captions.app import create_app
from mandarin_captions.config import load_settings


def main() -> None:
    settings = load_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.server.log_level.lower(),
    )


if __name__ == "__main__":
    main()
