"""Logging, global defaults and persistence helpers."""

from .io import load_branch, load_trajectory, save_branch, save_trajectory
from .log_config import logger, setup_logging

__all__ = [
    "logger",
    "setup_logging",
    "save_trajectory",
    "load_trajectory",
    "save_branch",
    "load_branch",
]
