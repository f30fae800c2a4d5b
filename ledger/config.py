"""Settings read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """
    Runtime configuration.

    Every field can be set through a GARAGE_* environment variable;
    command-line flags take precedence over these values.
    """

    data_dir: Path = Path("data")
    log_level: str = "WARNING"
    invoice_prefix: str = "FAT"
    due_soon_days: int = 30
    background_writes: bool = False

    @property
    def vehicles_file(self) -> Path:
        return self.data_dir / "vehicles.yaml"

    @property
    def invoicing_file(self) -> Path:
        return self.data_dir / "invoicing.yaml"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables, falling back to defaults."""
    env = os.environ if environ is None else environ
    defaults = Settings()
    return Settings(
        data_dir=Path(env.get("GARAGE_DATA_DIR", str(defaults.data_dir))),
        log_level=env.get("GARAGE_LOG_LEVEL", defaults.log_level).upper(),
        invoice_prefix=env.get("GARAGE_INVOICE_PREFIX", defaults.invoice_prefix),
        due_soon_days=int(env.get("GARAGE_DUE_SOON_DAYS", defaults.due_soon_days)),
        background_writes=env.get("GARAGE_BACKGROUND_WRITES", "").lower()
        in _TRUE_VALUES,
    )
