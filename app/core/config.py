from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API Settings
    PROJECT_NAME: str = "Stellar Split API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Bill splitting with on-chain settlement of individual shares"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "stellar_split"
    STATE_COLLECTION: str = "app_state"
    BILLS_STORAGE_KEY: str = "stellar_split_bills"

    # Ledger (Horizon)
    HORIZON_URL: str = "https://horizon-testnet.stellar.org"
    HORIZON_TIMEOUT_SECONDS: float = 30.0
    NETWORK_PASSPHRASE: str = "Test SDF Network ; September 2015"
    NETWORK_NAME: str = "TESTNET"
    EXPLORER_TX_URL: str = "https://stellar.expert/explorer/testnet/tx/"

    # Payments
    BASE_FEE: int = 100
    TX_TIMEOUT_SECONDS: int = 180
    PAYMENT_MEMO: str = "StellarSplit"

    # Signing agent
    SIGNING_AGENT_URL: str = "http://localhost:8787"
    SIGNING_AGENT_TIMEOUT_SECONDS: float = 120.0

    # Wallet session
    CONNECT_TIMEOUT_SECONDS: float = 20.0
    BALANCE_REFRESH_SECONDS: float = 15.0

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )

settings = Settings()
