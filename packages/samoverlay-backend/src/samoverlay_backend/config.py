"""Configuration settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from samoverlay_backend.enums import ColorMetric


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", protected_namespaces=("settings_",))

    sam2_checkpoint: str = "weights/sam2.1_hiera_base_plus.pt"
    sam2_model_config: str = "configs/sam2.1/sam2.1_hiera_b+.yaml"
    device: str = "auto"
    load_model_on_startup: bool = True

    # Fixed resolution the prompt encoder expects coordinates in
    model_input_width: int = 1024
    model_input_height: int = 1024

    overlay_opacity: float = 0.6
    color_metric: ColorMetric = ColorMetric.MIN

    inference_retries: int = 2
    inference_retry_backoff: float = 0.1

    log_level: str = "INFO"

    @property
    def model_input_size(self) -> tuple[int, int]:
        """Model input size as (width, height)."""
        return self.model_input_width, self.model_input_height


settings = Settings()
