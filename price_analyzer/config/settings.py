# price_analyzer/config/settings.py

"""Central configuration for the AI price analyzer."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back on bad input."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Settings:
    """Central configuration for the AI price analyzer."""

    # --- Model endpoint ---
    OPENAI_API_URL: str = os.getenv(
        "OPENAI_API_URL",
        "https://api.openai.com/v1/chat/completions",
    )
    RELAY_URL: str = os.getenv("RELAY_URL", "")
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    API_KEY_PREFIX: str = "sk-"         # Documented provider key prefix
    DEFAULT_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o")
    AVAILABLE_MODELS: list[str] = [
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-4-turbo",
    ]
    TEMPERATURE: float = 0.1
    MAX_TOKENS: int = 3000

    # --- Transport ---
    REQUEST_DELAY: float = _env_float("REQUEST_DELAY", 2.0)
    REQUEST_TIMEOUT: float = _env_float("REQUEST_TIMEOUT", 120.0)
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    USER_AGENT: str = "AI-Price-Analyzer/1.0"

    # --- Operation log ---
    LOG_CAPACITY: int = 1000

    # --- Marketplaces named in prompts ---
    COMPETITOR_SITES: list[str] = [
        "Wildberries",
        "Ozon",
        "Yandex Market",
        "DNS",
        "M.Video",
        "Citilink",
        "Eldorado",
    ]
    USED_MARKET_SEARCH_URL: str = (
        "https://www.avito.ru/rossiya?q={query}&s=104"
    )
    DEFAULT_CURRENCY: str = "RUB"

    # --- Command keywords (matched on lower-cased text) ---
    EDIT_KEYWORDS: list[str] = [
        "change",
        "set",
        "update",
        "rename",
        "измени",
        "поменяй",
        "установи",
        "обнови",
    ]
    USED_KEYWORDS: list[str] = [
        "avito",
        "used",
        "second-hand",
        "second hand",
        "авито",
        "б/у",
    ]
    COMPETITOR_KEYWORDS: list[str] = [
        "competitor",
        "find price",
        "search price",
        "price search",
        "конкурент",
        "найди цену",
        "поиск цен",
    ]
    EDITABLE_FIELDS: list[str] = [
        "name",
        "description",
        "quantity",
        "purchasePrice",
        "salePrice",
    ]

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"
    EXPORTS_DIR: Path = BASE_DIR / "exports"

    # --- Demo data ---
    TEST_PRODUCTS: list[dict[str, object]] = [
        {
            "name": "iPhone 15 Pro 128GB",
            "description": "New iPhone 15 Pro 128GB, black",
            "quantity": 5,
            "purchasePrice": 85000,
            "salePrice": 95000,
        },
        {
            "name": "Samsung Galaxy S24 Ultra",
            "description": "Samsung Galaxy S24 Ultra 256GB",
            "quantity": 3,
            "purchasePrice": 75000,
            "salePrice": 85000,
        },
        {
            "name": "MacBook Air M2",
            "description": 'MacBook Air 13" M2 256GB',
            "quantity": 2,
            "purchasePrice": 95000,
            "salePrice": 110000,
        },
        {
            "name": "AirPods Pro 2",
            "description": "Apple AirPods Pro, 2nd generation",
            "quantity": 10,
            "purchasePrice": 18000,
            "salePrice": 22000,
        },
    ]
