from mafia_backend.config.config_loader import load_rules
from mafia_backend.config.config_validator import ConfigValidator

__all__ = ["load_rules", "ConfigValidator"]
