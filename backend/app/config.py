"""
Application configuration using Pydantic settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from typing import Dict, List


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_name: str = "Cadence"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./data/db.sqlite"

    # Merchant normalization
    merchant_key_max_length: int = 30
    merchant_aliases: Dict[str, str] = {
        "amzn": "amazon",
        "amazon": "amazon",
        "netflix": "netflix",
        "spotify": "spotify",
        "hbo": "hbo max",
        "openai": "openai",
        "chatgpt": "openai",
        "apple.com": "apple",
        "google one": "google one",
        "google storage": "google one",
        "so cal edison": "socal edison",
        "socal edison": "socal edison",
        "godaddy": "godaddy",
    }
    # Merchants that bill many unrelated things; grouped by amount bucket too
    ambiguous_merchants: List[str] = ["amazon", "paypal", "venmo", "apple", "google", "square"]

    # Pattern detection
    min_occurrences: int = 3
    monthly_window_days: List[float] = [25, 35]
    seasonal_window_days: List[float] = [36, 100]
    subscription_max_amount_cv: float = 0.10
    moderate_amount_cv: float = 0.25
    gap_tolerance: float = 0.15
    moderate_gap_tolerance: float = 0.35
    max_gap_cv: float = 0.6
    high_confidence_min_occurrences: int = 4

    # Priority lookup table: keyword -> priority
    essential_keywords: List[str] = [
        "edison", "electric", "water", "gas co", "utility", "utilities", "power",
        "insurance", "geico", "state farm", "rent", "mortgage", "property mgmt",
    ]
    important_keywords: List[str] = [
        "verizon", "t mobile", "at&t", "comcast", "xfinity", "spectrum", "phone",
        "wireless", "internet", "gym", "fitness", "planet fitness", "google one",
        "openai", "godaddy", "icloud", "storage", "netflix", "spotify", "hbo max",
    ]
    discretionary_keywords: List[str] = [
        "restaurant", "cafe", "coffee", "starbucks", "chipotle", "doordash",
        "uber eats", "grubhub", "bar & grill", "shop", "store", "gaming",
    ]
    category_priorities: Dict[str, str] = {
        "utilities": "essential",
        "insurance": "essential",
        "rent/mortgage": "essential",
        "housing": "essential",
        "subscriptions": "important",
        "phone": "important",
        "restaurants": "discretionary",
        "shopping": "discretionary",
        "entertainment": "discretionary",
    }

    # Prediction
    trend_threshold: float = 0.05
    trend_window: int = 6
    max_prediction_multiplier: float = 3.0

    # Anomaly detection
    subscription_amount_tolerance: float = 0.10
    seasonal_amount_tolerance: float = 0.25
    variable_amount_tolerance: float = 0.30
    timing_slack_days: int = 5
    duplicate_window_days: int = 7
    duplicate_amount_delta: float = 1.00

    # Cash reservation
    default_days_ahead: int = 14
    max_days_ahead: int = 365
    tight_buffer_fraction: float = 0.2

    # Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    frontend_url: str = "http://localhost:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )


# Global settings instance
settings = Settings()
