"""
streamwarp CLI module - shared console and commands.
"""
from streamwarp.cli.console import console, custom_theme
from streamwarp.cli.scrape import build_config, display_report, scrape_command

__all__ = [
    'console',
    'custom_theme',
    'build_config',
    'display_report',
    'scrape_command',
]
