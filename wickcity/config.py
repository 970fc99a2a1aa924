from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Page fetcher
    page_timeout_seconds: float = 8.0
    search_timeout_seconds: float = 12.0
    max_response_bytes: int = 2 * 1024 * 1024
    max_redirects: int = 5
    pool_max_connections: int = 15
    pool_keepalive_seconds: float = 30.0
    verify_tls: bool = True
    fetch_backoff_seconds: float = 1.2
    max_concurrent_fetches: int = 5

    # Search cascade
    search_sufficient_results: int = 6
    search_minimum_results: int = 4
    searxng_instances: str = (
        "https://search.sapti.me,https://priv.au,https://searx.be,"
        "https://search.ononoki.org,https://searx.tiekoetter.com,"
        "https://search.mdosch.de,https://searx.info,https://etsi.me"
    )
    searxng_max_attempts: int = 3

    # Content extraction
    content_max_chars: int = 15000
    content_min_chars: int = 50

    # Request caches
    search_cache_max_entries: int = 80
    search_cache_ttl_seconds: int = 600
    instant_cache_max_entries: int = 100
    instant_cache_ttl_seconds: int = 900
    cache_sweep_interval_seconds: int = 300

    # Rate limiting (per client, fixed window)
    rate_limit_window_seconds: int = 60
    search_rate_limit: int = 25
    general_rate_limit: int = 60

    # End-to-end deadlines
    search_deadline_seconds: float = 120.0
    instant_deadline_seconds: float = 15.0
    scrape_deadline_seconds: float = 20.0
    news_worker_timeout_seconds: float = 90.0

    # App
    max_query_chars: int = 500
    cors_origins: str = "*"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def searxng_instance_list(self) -> list[str]:
        return [i.strip().rstrip("/") for i in self.searxng_instances.split(",") if i.strip()]


settings = Settings()
