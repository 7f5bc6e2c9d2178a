from .settings import AppSettings, ObservabilityConfig, PredictionConfig, ScoringConfig, settings

__all__ = ["settings", "AppSettings", "PredictionConfig", "ScoringConfig", "ObservabilityConfig"]
