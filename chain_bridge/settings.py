from __future__ import annotations

import os


class Settings:
    # Where chain_bridge.yaml is looked up (defaults to the working directory)
    REPO_ROOT: str = os.getenv("CHAIN_BRIDGE_ROOT", os.getcwd())
    CONFIG_PATH: str = os.getenv("CHAIN_BRIDGE_CONFIG", "")

    # Ask the engine for its chain id while the app is being created
    LEARN_CHAIN_ID_ON_START: bool = os.getenv("CHAIN_BRIDGE_LEARN_CHAIN_ID", "1") == "1"


settings = Settings()
