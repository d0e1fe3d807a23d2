from __future__ import annotations

import os
from typing import Any

import uvicorn

APP_PATH = "lifewheel.web.main:app"


def server_options() -> dict[str, Any]:
    """uvicorn options from the environment; reload only in development."""
    environment = os.getenv("APP_ENVIRONMENT", "development").lower()
    return {
        "host": os.getenv("HOST", "0.0.0.0"),
        "port": int(os.getenv("PORT", "8000")),
        "reload": environment == "development",
    }


def main() -> None:
    uvicorn.run(APP_PATH, **server_options())


if __name__ == "__main__":
    main()
