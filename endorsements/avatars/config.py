from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class AvatarConfig:
    base_url: str = os.getenv("AVATAR_BASE_URL", "https://github.com")
    timeout: float = float(os.getenv("AVATAR_FETCH_TIMEOUT", "10.0"))
    max_redirects: int = 5
    user_agent: str = "Mozilla/5.0 (compatible; EndorsementBot/1.0)"
    accept: str = "image/*"
    default_content_type: str = "image/png"


DEFAULT_AVATAR_CONFIG = AvatarConfig()
