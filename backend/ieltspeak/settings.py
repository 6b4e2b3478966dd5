from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY"))
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	# Model used to score finished conversations
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	# Lighter model for the live suggestion stream
	gemini_model_suggestions: str = Field(default="gemini-2.0-flash-lite", validation_alias="GEMINI_MODEL_SUGGESTIONS")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter fallback configuration (optional, single-shot calls only)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="IELTSpeak", validation_alias="OPENROUTER_TITLE")

	# Examiner assistant handed to the voice SDK
	assistant_model: str = Field(default="gpt-4", validation_alias="ASSISTANT_MODEL")
	assistant_voice_id: str = Field(default="burt", validation_alias="ASSISTANT_VOICE_ID")
	assistant_max_duration_seconds: int = Field(default=1800, validation_alias="ASSISTANT_MAX_DURATION_SECONDS")
	assistant_silence_timeout_seconds: int = Field(default=60, validation_alias="ASSISTANT_SILENCE_TIMEOUT_SECONDS")
	# How long the browser may take to confirm a started call
	assistant_connect_timeout_seconds: float = Field(default=30.0, validation_alias="ASSISTANT_CONNECT_TIMEOUT_SECONDS")

	# Unread evaluation handoffs older than this are purged
	result_cache_ttl_seconds: int = Field(default=3600, validation_alias="RESULT_CACHE_TTL_SECONDS")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
