"""Runtime settings for the resolution sandbox."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SolverSettings(BaseSettings):
    """Settings read from ``REQPATCH_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="REQPATCH_")

    command_timeout: float = Field(default=900.0, gt=0)
    pyenv_command: str = "pyenv"
    pre_installed_python_versions: list[str] = ["3.12.7"]
    helper_requirements_path: str | None = None
    log_level: str = "INFO"
