import logging
import sys
from typing import List, Optional

from pydantic_settings import BaseSettings

from retread.engine.policies import DeletionPolicy, NonPositiveQuantity
from retread.engine.stats import BonusAccrual, BonusPolicy
from retread.engine.types import BONUS_THRESHOLD


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./retread.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"
    RESET_DB: bool = False

    BONUS_THRESHOLD: int = BONUS_THRESHOLD
    BONUS_ACCRUAL: BonusAccrual = BonusAccrual.GROSS
    SHIPMENT_NUMBER_PREFIX: str = "REM"
    SHIPMENT_DELETE_POLICY: DeletionPolicy = DeletionPolicy.UNFINISHED_ONLY
    NONPOSITIVE_QUANTITY: NonPositiveQuantity = NonPositiveQuantity.REJECT

    # remote spreadsheet endpoint; sync jobs stay off while unset
    SHEET_ENDPOINT_URL: Optional[str] = None
    SHEET_TIMEOUT_SECONDS: float = 15.0
    SYNC_INTERVAL_SECONDS: int = 60
    STORE_LOCK_TIMEOUT: float = 10.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def bonus_policy(self) -> BonusPolicy:
        return BonusPolicy(threshold=self.BONUS_THRESHOLD, accrual=self.BONUS_ACCRUAL)


settings = Settings()


def configure_logging(level: Optional[str] = None):
    root = logging.getLogger("retread")
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if not root.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        root.addHandler(h)
    return root
