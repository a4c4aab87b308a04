from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(True, alias="LOG_JSON")

    # M-Pesa channels (business short codes) and their routing parameters
    mpesa_legacy_paybill: str = Field("529914", alias="MPESA_LEGACY_PAYBILL")
    mpesa_pinned_paybill: str = Field("400200", alias="MPESA_PINNED_PAYBILL")
    mpesa_pinned_bill_ref: str = Field("01109613617800", alias="MPESA_PINNED_BILL_REF")
    mpesa_pinned_category: str = Field("Computer Studies", alias="MPESA_PINNED_CATEGORY")
    mpesa_shared_till: str = Field("5669463", alias="MPESA_SHARED_TILL")

    # 3-letter fee code (as typed by the payer in the bill reference) -> fee category name
    fee_code_categories: Dict[str, str] = Field(
        default_factory=lambda: {
            "TUI": "Tuition",
            "MEA": "Meals",
            "TRN": "Transport",
            "EXM": "Exams",
        },
        alias="FEE_CODE_CATEGORIES",
    )

    # Term that yearly (term-less) ledger lines rank as in rollover; None ranks them before TERM1
    rollover_null_term_as: Optional[str] = Field("TERM1", alias="ROLLOVER_NULL_TERM_AS")

    @field_validator("rollover_null_term_as", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip().upper() if isinstance(v, str) else v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
