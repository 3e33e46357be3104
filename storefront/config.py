import logging
import warnings

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Environment
    environment: str = "development"  # development | test | production

    # Database (sqlite for local dev, postgresql+asyncpg for production)
    database_url: str = "sqlite+aiosqlite:///./data/storefront.db"

    # Auth
    jwt_secret_key: str = "dev-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_hours: int = 24 * 7  # 7 days

    # Shared secret for /protected endpoints (empty = open, dev only)
    protected_api_key: str = ""

    # CORS
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # BitQuery (chain transaction reader)
    bitquery_url: str = "https://graphql.bitquery.io"
    bitquery_api_key: str = ""
    bitquery_lookback_hours: int = 24
    bitquery_timeout_seconds: float = 30.0

    # JSON-RPC endpoints for contract state reads
    ethereum_rpc_url: str = "https://cloudflare-eth.com"
    sepolia_rpc_url: str = "https://rpc.sepolia.org"
    bsc_rpc_url: str = "https://bsc-dataseed.bnbchain.org"
    bsc_testnet_rpc_url: str = "https://data-seed-prebsc-1-s1.bnbchain.org:8545"
    polygon_rpc_url: str = "https://polygon-rpc.com"
    polygon_mumbai_rpc_url: str = "https://rpc-mumbai.maticvigil.com"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()

_logger = logging.getLogger("storefront.config")
_INSECURE_SECRETS = {
    "dev-secret-change-in-production",
    "change-me-to-a-random-string",
}


def validate_security_posture(cfg: Settings) -> None:
    is_prod = cfg.environment.lower() in {"production", "prod"}

    if cfg.jwt_secret_key in _INSECURE_SECRETS:
        if is_prod:
            raise RuntimeError(
                "FATAL: JWT_SECRET_KEY is set to an insecure default. "
                "Set a strong random secret via the JWT_SECRET_KEY environment variable before deploying to production."
            )
        warnings.warn(
            "JWT_SECRET_KEY is set to the default insecure value. "
            "Set a strong random secret via the JWT_SECRET_KEY environment variable for production.",
            stacklevel=1,
        )

    if not cfg.protected_api_key:
        if is_prod:
            raise RuntimeError(
                "FATAL: PROTECTED_API_KEY must be set in production. "
                "The blockchain reconciliation endpoints are otherwise callable by anyone."
            )
        _logger.warning(
            "PROTECTED_API_KEY is empty; /protected endpoints accept unauthenticated calls. "
            "Set PROTECTED_API_KEY for production."
        )

    if cfg.cors_origins == "*" and is_prod:
        raise RuntimeError(
            "FATAL: CORS_ORIGINS cannot be '*' in production. "
            "Set explicit trusted origins via the CORS_ORIGINS environment variable."
        )


validate_security_posture(settings)
