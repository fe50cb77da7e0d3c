"""Configuration models for the command dispatch shell."""

from __future__ import annotations

from pydantic import BaseModel, Field


class BinderConfig(BaseModel):
    """Configures placeholder substitution into command templates."""

    placeholder: str = Field(default="$ARGUMENTS", min_length=1)
    default_argument: str = Field(default="Full scope")


class RegistryConfig(BaseModel):
    """Configures document registry layout and metadata heuristics."""

    documents_root: str = Field(default="project-documents", min_length=1)
    registry_path: str = Field(default="machine-data/project-document-registry.json")
    workflow_state_path: str = Field(default="project-state/workflow-state.json")
    default_category: str = Field(default="general", min_length=1)
    chars_per_token: int = Field(default=4, ge=1)
    max_summary_words: int = Field(default=25, ge=1)


class DispatchConfig(BaseModel):
    """Configures dispatch execution and latency/cost targets."""

    target_latency_seconds: float = Field(default=30.0, gt=0.0)
    max_prompt_tokens: int = Field(default=32_000, ge=1)
    default_agent: str = Field(default="Unknown", min_length=1)
