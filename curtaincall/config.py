"""Runtime configuration read from the environment.

Credentials are optional at load time: each client checks its own
credential before issuing a request and degrades to a no-op when it is
missing.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite:///data/curtaincall.db"
DEFAULT_CATEGORIES: Tuple[str, ...] = ("AAAA", "GGGA")  # theater, musical


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    try:
        return int(raw) if raw is not None else default
    except ValueError:
        return default


@dataclass
class Settings:
    kopis_api_key: Optional[str] = None
    kakao_api_key: Optional[str] = None
    naver_client_id: Optional[str] = None
    naver_client_secret: Optional[str] = None
    database_url: str = DEFAULT_DATABASE_URL
    categories: Tuple[str, ...] = field(default=DEFAULT_CATEGORIES)
    item_delay: float = 0.05
    page_delay: float = 0.1
    lookahead_days: int = 30
    schedule: str = "0 3 * * *"
    http_timeout: Optional[float] = None
    meta_timeout: float = 3.0
    max_limit: int = 50

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        return cls(
            kopis_api_key=os.environ.get("KOPIS_API_KEY") or None,
            kakao_api_key=os.environ.get("KAKAO_LOCAL_API") or None,
            naver_client_id=os.environ.get("NAVER_CLIENT_ID") or None,
            naver_client_secret=os.environ.get("NAVER_CLIENT_SECRET") or None,
            database_url=os.environ.get("CURTAINCALL_DATABASE_URL", DEFAULT_DATABASE_URL),
            item_delay=_env_float("CURTAINCALL_ITEM_DELAY", 0.05),
            page_delay=_env_float("CURTAINCALL_PAGE_DELAY", 0.1),
            lookahead_days=_env_int("CURTAINCALL_LOOKAHEAD_DAYS", 30),
            schedule=os.environ.get("CURTAINCALL_SCHEDULE", "0 3 * * *"),
            http_timeout=_env_float("CURTAINCALL_HTTP_TIMEOUT", None),
            max_limit=_env_int("CURTAINCALL_MAX_LIMIT", 50),
        )

    @property
    def has_naver_credentials(self) -> bool:
        return bool(self.naver_client_id and self.naver_client_secret)
