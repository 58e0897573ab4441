from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QMDASH_LLM__",
        env_file=".env",
        extra="ignore",
    )

    # Any OpenAI-compatible chat-completion endpoint works; Groq is the default provider.
    base_url: str = "https://api.groq.com/openai/v1"
    api_key: str = ""
    model: str = "llama-3.1-8b-instant"
    temperature: float = 0.2
    max_tokens: int = 2000
    timeout_s: float = 10.0


class DatabaseConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QMDASH_DB__",
        env_file=".env",
        extra="ignore",
    )

    enabled: bool = False
    host: str = "localhost"
    port: int = 5432
    name: str = "qmdash"
    user: str = "qmdash"
    password: str = ""
    schema_: str = Field("public", alias="QMDASH_DB__SCHEMA", validation_alias="QMDASH_DB__SCHEMA")
    query_timeout_s: int = 30

    @property
    def conninfo(self) -> str:
        parts = f"host={self.host} port={self.port} dbname={self.name} user={self.user}"
        if self.password:
            parts += f" password={self.password}"
        return parts


class UploadConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QMDASH_UPLOAD__",
        env_file=".env",
        extra="ignore",
    )

    max_bytes: int = 20 * 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    llm: LLMConfig = LLMConfig()
    db: DatabaseConfig = DatabaseConfig()  # type: ignore[call-arg]
    upload: UploadConfig = UploadConfig()


settings = Settings()
