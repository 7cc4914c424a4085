from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv(override=True)

class Settings(BaseSettings):
    PROJECT_NAME: str = "Symbiote"
    # Application settings
    PORT: int = 3000
    HOST: str = "127.0.0.1"
    VERSION: str = "0.1.0"
    CORS_ORIGINS: str = "*"

    # SSL settings
    SSL_KEY: str | None = None
    SSL_CERT: str | None = None

    # SQLAlchemy database URL
    DATABASE_URL: str = "sqlite:///./symbiote.db"

    # Login configuration
    CHALLENGE_TTL_SECONDS: int = 300  # 5 minutes
    SESSION_TTL_SECONDS: int = 86400  # 24 hours

    # Game loop
    GAME_TICK_SECONDS: int = 300
    AUTOPLAY_MIN_INTERVAL_SECONDS: int = 60

    # Wallet activity polling
    WALLET_WATCH_ENABLED: bool = True
    WALLET_WATCH_INTERVAL_SECONDS: int = 30

    # Rate limits (slowapi / limits notation)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "120/minute"
    RATE_LIMIT_AUTH: str = "30/minute"

    # Trade settlement
    MIN_CONFIRM_VOLUME: float = 1.0
    SWAP_PROGRAM_ID: str = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"

    # Solana RPC
    SOLANA_RPC_URL: str = "https://api.mainnet-beta.solana.com"
    HTTP_TIMEOUT_SECONDS: float = 20.0

    # Jupiter swap api
    JUPITER_API_BASE: str = "https://quote-api.jup.ag/v6"
    JUPITER_FEE_BPS: int = 50
    JUPITER_REFERRAL_FEE_ACCOUNT: str = ""

    # Chat GPT settings
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4.1-mini"

    METADATA_IMAGE_BASE_URL: str = "https://api.dicebear.com/9.x/shapes/svg"

    # Debug settings
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

# Instantiate the settings
settings = Settings()
