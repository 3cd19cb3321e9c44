"""Claim pipeline server entry point.

Uses Hydra to load configuration, wires the pipeline and starts the
FastAPI application (intake API plus channel consumers) via uvicorn.

Usage::

    poetry run python -m claim_pipeline.main                   # default config
    poetry run python -m claim_pipeline.main pipeline.seed=42  # override
"""

from __future__ import annotations

import os
from pathlib import Path

import hydra
import uvicorn
from dotenv import load_dotenv
from loguru import logger
from omegaconf import DictConfig, open_dict

from claim_pipeline.api.app import create_app

# Load .env BEFORE Hydra resolves ${oc.env:...} references
load_dotenv()

_SQLITE_PREFIX = "sqlite:///"


def _resolve_data_paths(cfg: DictConfig) -> None:
    """Anchor relative data and SQLite paths to the original working dir.

    Hydra changes the CWD to ``outputs/<date>/<time>/``; without this the
    policy CSV and the claims database would be looked up there.
    """
    original_cwd = Path(hydra.utils.get_original_cwd())

    with open_dict(cfg):
        csv_path = cfg.data.get("policies_csv")
        if csv_path and not Path(csv_path).is_absolute():
            cfg.data.policies_csv = str(original_cwd / csv_path)

        url: str = cfg.database.url
        if url.startswith(_SQLITE_PREFIX) and ":memory:" not in url:
            db_path = Path(url[len(_SQLITE_PREFIX):])
            if not db_path.is_absolute():
                db_path = original_cwd / db_path
                cfg.database.url = f"{_SQLITE_PREFIX}{db_path}"
            db_path.parent.mkdir(parents=True, exist_ok=True)


@hydra.main(version_base=None, config_path="../../conf", config_name="config")
def main(cfg: DictConfig) -> None:
    """Bootstrap the application from Hydra config and run uvicorn."""
    _resolve_data_paths(cfg)

    # Change back to project root so uvicorn / other libs behave normally
    os.chdir(hydra.utils.get_original_cwd())

    app = create_app(cfg)

    host: str = cfg.server.host
    port: int = cfg.server.port
    debug: bool = cfg.server.debug

    logger.info(
        "Starting server on {host}:{port} (debug={debug})",
        host=host,
        port=port,
        debug=debug,
    )

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="debug" if debug else "info",
    )


if __name__ == "__main__":
    main()
