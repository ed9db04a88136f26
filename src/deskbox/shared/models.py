"""Frozen Pydantic domain models shared by all modules."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CursorPosition(BaseModel):
    """Pointer coordinates on the virtual display."""

    model_config = {"frozen": True}

    x: int = Field(ge=0)
    y: int = Field(ge=0)


class ScreenSize(BaseModel):
    """Current resolution of the virtual display."""

    model_config = {"frozen": True}

    width: int = Field(gt=0)
    height: int = Field(gt=0)


class TemplateResources(BaseModel):
    """Resource sizing passed to providers when provisioning or building templates.

    Each provider reads the fields it understands: E2B uses ``cpu_count`` and
    ``memory_mb``, Daytona additionally honours ``disk_gb``, Docker maps the
    first two onto ``nano_cpus`` and ``mem_limit``.
    """

    model_config = {"frozen": True}

    cpu_count: int | None = Field(default=None, gt=0)
    memory_mb: int | None = Field(default=None, gt=0)
    disk_gb: int | None = Field(default=None, gt=0)
