"""Utility functions."""

from .config_loader import WizardConfig, load_config
from .catalogue_loader import BUNDLED_DIR, check_catalogue_file, list_catalogues, load_catalogue, resolve_catalogue_path
from .file_writer import FileBatch, write_all
from .markdown_formatter import format_summary_markdown, format_table, render_catalogue_markdown
from .structured_logging import StructuredFormatter, setup_structured_logging

__all__ = [
    "WizardConfig",
    "load_config",
    "BUNDLED_DIR",
    "check_catalogue_file",
    "list_catalogues",
    "load_catalogue",
    "resolve_catalogue_path",
    "FileBatch",
    "write_all",
    "format_summary_markdown",
    "format_table",
    "render_catalogue_markdown",
    "StructuredFormatter",
    "setup_structured_logging",
]
