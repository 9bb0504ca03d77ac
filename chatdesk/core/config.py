# chatdesk/core/config.py
# -*- coding: utf-8 -*-
"""
Chatdesk — Configuration
------------------------
Central configuration for the chat server:

- app metadata and API host/port
- record store location and persistence behaviour
- scripted reply timing and the bootstrap step key
- WebSocket frame size limit and CORS origins

Values come from the environment or a `.env` file at the project root.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

# This file is: <root>/chatdesk/core/config.py
PACKAGE_DIR: Path = Path(__file__).resolve().parents[1]   # .../chatdesk
ROOT_DIR: Path = PACKAGE_DIR.parent                        # project root

DATA_DIR: Path = ROOT_DIR / "data"


# ---------------------------------------------------------------------------
# Settings model
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """
    Global configuration for the chat server.

    Instantiated once at import time as `settings`. Not to be confused with
    the `GlobalSettings` record (the scripts on/off switch stored in the
    record store).
    """

    model_config = SettingsConfigDict(
        env_file=ROOT_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- App / server basics -----------------------------------------------
    app_name: str = "Chatdesk Support Server"
    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False

    api_host: str = "0.0.0.0"
    # Hosting platforms inject PORT; API_PORT works too.
    api_port: int = Field(
        default=4000,
        validation_alias=AliasChoices("api_port", "port"),
    )

    # --- Record store -------------------------------------------------------
    store_path: Path = Field(
        default=DATA_DIR / "chatdesk.json",
        validation_alias=AliasChoices("store_path", "chatdesk_store_path"),
        description="JSON file backing the record store.",
    )
    store_auto_persist: bool = True

    # --- Scripted conversation ---------------------------------------------
    script_reply_delay_s: float = 0.8
    start_step_key: str = "start"
    # When True a pending scripted reply is cancelled by a newer message,
    # a newer scheduled reply, or deletion of its chat.
    supersede_pending_scripts: bool = False

    # --- Transport ----------------------------------------------------------
    ws_max_message_mb: int = 100
    cors_origins: List[str] = ["*"]


# Single global settings instance used by the rest of the app.
settings = Settings()


if __name__ == "__main__":
    print("Chatdesk — Settings self-test")
    print(f"ROOT_DIR          : {ROOT_DIR}")
    print(f"Environment       : {settings.environment}")
    print(f"API               : {settings.api_host}:{settings.api_port}")
    print(f"Store path        : {settings.store_path}")
    print(f"Reply delay (s)   : {settings.script_reply_delay_s}")
    print(f"Start step key    : {settings.start_step_key}")
    print(f"Supersede scripts : {settings.supersede_pending_scripts}")
