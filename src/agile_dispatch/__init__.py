"""AgileAiAgents command dispatch package."""

from .config import BinderConfig, DispatchConfig, RegistryConfig

__all__ = ["BinderConfig", "DispatchConfig", "RegistryConfig"]
