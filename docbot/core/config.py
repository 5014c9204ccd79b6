from pydantic import computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "docbot-service"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "local"
    LOG_LEVEL: str = "INFO"
    METRICS_PORT: int = 0

    SOLR_URL: str = "http://localhost:8983/solr"
    SOLR_COLLECTION: str = "documents"
    SOLR_TIMEOUT_SECONDS: float = 30.0

    SEARCH_MAX_RESULTS: int = 20
    SEARCH_MIN_SCORE: float = 0.1
    SEARCH_BOOST_DOC_NAME: float = 10.0
    SEARCH_BOOST_CONTENT: float = 1.0
    CONTEXT_TOP_N: int = 10

    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 200
    MIN_CHUNK_LENGTH: int = 50

    SYNC_ENABLED: bool = True
    SYNC_INTERVAL_MINUTES: float = 2.0

    DRIVE_API_URL: str = "https://www.googleapis.com/drive/v3"
    DRIVE_ACCESS_TOKEN: str = ""
    DRIVE_FOLDER_IDS: str = ""
    DRIVE_PAGE_SIZE: int = 100
    DRIVE_REQUEST_TIMEOUT_SECONDS: float = 60.0

    CONFLUENCE_BASE_URL: str = ""
    CONFLUENCE_AUTH_MODE: str = "basic"
    CONFLUENCE_PAT: str = ""
    CONFLUENCE_USERNAME: str = ""
    CONFLUENCE_API_TOKEN: str = ""
    CONFLUENCE_SPACE_KEYS: str = ""
    CONFLUENCE_PAGE_LIMIT: int = 50
    CONFLUENCE_REQUEST_TIMEOUT_SECONDS: float = 30.0

    S3_ENDPOINT: str = ""
    S3_ACCESS_KEY: str = ""
    S3_SECRET_KEY: str = ""
    S3_REGION: str = "us-east-1"
    S3_SECURE: bool = True
    S3_CATALOG_BUCKET: str = ""
    S3_CATALOG_PREFIX: str = ""
    S3_CATALOG_ALLOWED_EXTENSIONS: str = ".pdf,.doc,.docx,.xls,.xlsx,.txt,.csv"
    S3_CATALOG_MAX_OBJECT_MB: int = 50
    S3_CATALOG_PAGE_SIZE: int = 1000

    LLM_ENDPOINT: str = ""
    LLM_MODEL: str = ""
    LLM_TEMPERATURE: float = 0.3
    LLM_KEEP_ALIVE: int = 0
    REQUEST_TIMEOUT_SECONDS: float = 120.0
    CONTEXT_CHARS_PER_CHUNK: int = 2000
    MAX_SOURCE_REFERENCES: int = 5

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="forbid")

    @field_validator("CHUNK_SIZE", "SEARCH_MAX_RESULTS", "CONTEXT_TOP_N")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("value must be >= 1")
        return value

    @field_validator("CHUNK_OVERLAP", "MIN_CHUNK_LENGTH")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("value must be >= 0")
        return value

    @field_validator("SEARCH_MIN_SCORE")
    @classmethod
    def validate_min_score(cls, value: float) -> float:
        if value < 0:
            raise ValueError("SEARCH_MIN_SCORE must be >= 0")
        return value

    @field_validator("SYNC_INTERVAL_MINUTES")
    @classmethod
    def validate_sync_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("SYNC_INTERVAL_MINUTES must be > 0")
        return value

    @model_validator(mode="after")
    def validate_chunk_window(self) -> "Settings":
        if self.CHUNK_OVERLAP >= self.CHUNK_SIZE:
            raise ValueError("CHUNK_OVERLAP must be less than CHUNK_SIZE")
        return self

    @computed_field
    @property
    def solr_core_url(self) -> str:
        return f"{self.SOLR_URL.rstrip('/')}/{self.SOLR_COLLECTION}"


settings = Settings()
