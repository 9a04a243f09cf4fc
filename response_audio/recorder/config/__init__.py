"""Configuration helpers for the recorder."""

from .settings import RecorderSettings, build_arg_parser, parse_cli_args, read_config_file

__all__ = ["RecorderSettings", "build_arg_parser", "parse_cli_args", "read_config_file"]
