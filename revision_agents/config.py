"""
Konfiguration des Agent Systems.

Defaults entsprechen dem Produktivbetrieb (Scan jede Minute, Planning alle 5s).
Overrides kommen aus der Umgebung bzw. einer .env Datei:

    REVISION_SCAN_INTERVAL=60
    REVISION_PLAN_INTERVAL=5
    REVISION_HEALTH_CHECK_INTERVAL=60
    REVISION_MAX_BATCH_SIZE=5
    REVISION_HISTORY_SIZE=1000
    REVISION_CONFIDENCE_THRESHOLD=0.7
    REVISION_MAX_FINDINGS=1000
    REVISION_MAX_PLANS=500
    REVISION_LOG_LEVEL=INFO
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .models import DataSource, DataSourceKind

ENV_PREFIX = "REVISION_"


def default_data_sources() -> list[DataSource]:
    """Fest konfigurierte Datenquellen des Research Agents."""
    return [
        DataSource(
            name="CDC ART Reports",
            kind=DataSourceKind.API,
            url="https://api.cdc.gov/art",
            update_interval=1440,  # täglich
        ),
        DataSource(
            name="Congress.gov",
            kind=DataSourceKind.WEB,
            url="https://www.congress.gov",
            update_interval=60,  # stündlich
        ),
        DataSource(
            name="Market Intelligence",
            kind=DataSourceKind.DATABASE,
            update_interval=720,  # zweimal täglich
        ),
    ]


class AgentSystemConfig(BaseModel):
    """Laufzeit-Konfiguration für EventBus, Agents und Health Check."""
    scan_interval: float = Field(default=60.0, gt=0, description="Sekunden zwischen Scan-Zyklen.")
    plan_interval: float = Field(default=5.0, gt=0, description="Sekunden zwischen Planning-Batches.")
    health_check_interval: float = Field(default=60.0, gt=0)
    max_batch_size: int = Field(default=5, ge=1)
    history_size: int = Field(default=1000, ge=1)
    confidence_threshold: float = Field(default=0.7, ge=0, le=1)
    max_findings: int = Field(default=1000, ge=1, description="Publizierte Findings, die der Research Agent behält.")
    max_plans: int = Field(default=500, ge=1, description="Pläne, die der Planning Agent behält.")
    log_level: str = "INFO"
    data_sources: list[DataSource] = Field(default_factory=default_data_sources)


def load_config(env_file: str | None = None) -> AgentSystemConfig:
    """
    Lädt die Konfiguration aus Umgebungsvariablen (inkl. .env).

    Args:
        env_file: Optionaler Pfad zu einer .env Datei

    Returns:
        Validierte AgentSystemConfig
    """
    load_dotenv(env_file)

    overrides = {}
    for name in AgentSystemConfig.model_fields:
        if name == "data_sources":
            continue
        value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            overrides[name] = value

    return AgentSystemConfig(**overrides)
