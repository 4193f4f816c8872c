from __future__ import annotations

import os

import uvicorn

from lesson_mentor.config import log_level, setup_logging


def main() -> None:
    setup_logging()
    port = int(os.environ.get("PORT", "8080"))
    uvicorn.run("lesson_mentor.main:app", host="0.0.0.0", port=port, log_level=log_level().lower())


if __name__ == "__main__":
    main()
