"""loginbox entrypoint.

Run with:
  python -m loginbox
"""

import logging
import os

import uvicorn
from uvicorn.config import LOG_LEVELS


def main() -> None:
    host = os.getenv("LOGINBOX_HOST", "0.0.0.0")
    port = int(os.getenv("LOGINBOX_PORT", "3000"))
    reload = os.getenv("LOGINBOX_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    log_level = os.getenv("LOGINBOX_LOG_LEVEL", "info").strip().lower()
    # uvicorn's names, "trace" included; stdlib logging does not know "trace".
    if log_level not in LOG_LEVELS:
        raise SystemExit(f"LOGINBOX_LOG_LEVEL inconnu: {log_level} (attendu: {', '.join(LOG_LEVELS)})")
    logging.basicConfig(
        level=LOG_LEVELS[log_level],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("loginbox.app:app", host=host, port=port, reload=reload, log_level=log_level)


if __name__ == "__main__":
    main()
