import os
from typing import List, Optional
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str) -> bool:
    return os.getenv(name, "0") in ("1", "true", "True")


class Settings(BaseModel):
    hf_endpoint: str = os.getenv("HF_ENDPOINT", "https://router.huggingface.co/")
    hf_model: str = os.getenv("HF_MODEL", "facebook/bart-large-mnli")
    hf_token: Optional[str] = os.getenv("HF_TOKEN")
    hf_timeout_seconds: float = float(os.getenv("HF_TIMEOUT_SECONDS", "60"))
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./data/app.db")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    allowed_origins: List[str] = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o.strip()]
    use_mock_classifier: bool = _flag("USE_MOCK_CLASSIFIER")


def get_settings() -> Settings:
    return Settings()
