from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

from .project_constants import REQUEST_CONFIRMATIONS


@dataclass(frozen=True)
class Settings:
    rpc_url: str | None
    request_confirmations: int = REQUEST_CONFIRMATIONS

    @staticmethod
    def from_env(rpc_url_override: str | None = None) -> "Settings":
        load_dotenv()

        confirmations = int(
            os.getenv("REQUEST_CONFIRMATIONS", str(REQUEST_CONFIRMATIONS)).strip()
        )
        if confirmations <= 0:
            raise RuntimeError("REQUEST_CONFIRMATIONS must be positive.")

        # If user provides --rpc-url, trust it.
        if rpc_url_override:
            rpc_url: str | None = rpc_url_override
        else:
            rpc_url = os.getenv("RPC_URL", "").strip() or None

        return Settings(rpc_url=rpc_url, request_confirmations=confirmations)

    def require_rpc_url(self) -> str:
        if not self.rpc_url:
            raise RuntimeError("Missing RPC_URL. Put it in .env or export it.")
        return self.rpc_url
