from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Service Configuration
    PAYMASTER_PORT: int = 8002

    # Yield Optimizer Parameters
    DEFAULT_RISK_PREFERENCE: int = 5
    DEFAULT_EMERGENCY_FUNDS_PERCENTAGE: float = 10.0
    REBALANCE_REFERENCE_FUNDS: str = "1000"
    REBALANCE_DRIFT_THRESHOLD: float = 10.0

    # Risk Engine Parameters
    BASE_COIN_TYPE: str = "0x1::aptos_coin::AptosCoin"
    BASE_ASSET_SYMBOL: str = "APT"
    PAYMENT_URGENCY_SECONDS: int = 86400

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Allow extra fields in .env

# Global settings instance
settings = Settings()

SECONDS_PER_DAY = 86400

# Risk Levels, least to most severe
class RiskLevel:
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    ORDER = (LOW, MEDIUM, HIGH, CRITICAL)

    @classmethod
    def rank(cls, level: str) -> int:
        return cls.ORDER.index(level)

# Built-in yield protocol ids
class SupportedProtocols:
    THALA = 1
    ARIES = 2
    MOMENTUM = 3
