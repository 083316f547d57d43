import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        page_limit: int,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.page_limit = page_limit
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BUDGET_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "budget.db"
    database_url = os.getenv("BUDGET_DATABASE_URL", f"sqlite:///{default_db}")
    page_limit = int(os.getenv("BUDGET_PAGE_LIMIT", "20"))
    log_level = os.getenv("BUDGET_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        page_limit=max(page_limit, 1),
        log_level=log_level,
    )
