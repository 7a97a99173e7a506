"""Core types: Result, exit codes, configuration."""

from .config import Config, ConfigError, load_config, load_config_or_default
from .errors import ExitCode
from .result import Err, Ok, Result, is_err, is_ok

__all__ = [
    # config
    "Config",
    "ConfigError",
    "load_config",
    "load_config_or_default",
    # errors
    "ExitCode",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
]
