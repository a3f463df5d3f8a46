import os
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Use top level .env file (one level above ./js_processor/)
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    PROJECT_NAME: str = "js-processor"
    ENVIRONMENT: Literal["local", "test", "staging", "production"] = "local"

    # Application checkout that holds app/assets/javascripts and plugins/
    APP_ROOT: str = os.getcwd()

    # Entry point handed to esbuild when the processor bundle is rebuilt
    JS_PROCESSOR_SOURCE: str = "app/assets/javascripts/js-processor.js"
    # Command prefix used to run esbuild (split on whitespace)
    JS_PROCESSOR_BUILD_COMMAND: str = "yarn --silent esbuild"

    # Hard limit for a single eval/call inside V8 (milliseconds)
    JS_PROCESSOR_TIMEOUT_MS: int = 15_000
    # Idle time after the last call before V8 is asked to shrink its heap
    JS_PROCESSOR_IDLE_GC_MS: int = 2_000

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def JS_PROCESSOR_PATH(self) -> str:
        """Bundle location relative to APP_ROOT. Per-process outside production."""
        if self.is_production:
            return "tmp/js-processor.js"
        return f"tmp/js-processor/{os.getpid()}.js"


settings = Settings()  # type: ignore
