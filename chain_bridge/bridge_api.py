from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI

from chain_bridge import config as bridge_config
from chain_bridge.api import chain, governance, stake
from chain_bridge.backend import Backend
from chain_bridge.settings import settings

log = logging.getLogger(__name__)


def create_app(backend: Optional[Backend] = None, cfg: Optional[Dict[str, Any]] = None) -> FastAPI:
    app = FastAPI(title="Chain Bridge API")

    if backend is None:
        cfg = cfg or bridge_config.load_config(settings.REPO_ROOT, settings.CONFIG_PATH or None)
        bridge_config.configure_logging(cfg)
        backend = Backend.from_config(cfg)
        if settings.LEARN_CHAIN_ID_ON_START and not backend.start():
            log.warning("chain id not known yet; writes fail with chain_not_ready until /health succeeds")
    app.state.backend = backend

    # Routers
    app.include_router(chain.router)
    app.include_router(chain.net_router)
    app.include_router(stake.router)
    app.include_router(governance.router)

    @app.get("/health")
    def health():
        # retry the startup phase until the engine has told us its chain id
        ready = backend.chain.ready or backend.start()
        return {"ok": True, "ready": ready, "chain_id": backend.chain.chain_id}

    return app
