#!/usr/bin/env python3
# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "pyyaml>=6.0.0",
# ]
# ///
"""
meetsum configuration

Settings are read from a YAML file (settings.yaml). Lookup order:

  1. explicit --config path
  2. MEETSUM_CONFIG environment variable
  3. ./settings.yaml, ~/.config/meetsum/settings.yaml, /etc/meetsum/settings.yaml

Missing keys fall back to the defaults below. If no settings file is found in
the search paths, all defaults are used.
"""

import os
from pathlib import Path

import yaml

CONFIG_ENV_VAR = 'MEETSUM_CONFIG'
CONFIG_FILENAME = 'settings.yaml'

SEARCH_DIRS = [
    '.',
    os.path.join('~', '.config', 'meetsum'),
    os.path.join('/etc', 'meetsum'),
]

DEFAULTS = {
    'paths': {
        'file_browser_root_dir': '~/Documents/Company/Customers',
        'automation_dir': '~/Documents/Company/automation/summaries',
        'instructions_file': 'Meeting-summary-llm-instructions.md',
    },
    'files': {
        'transcript': 'transcript.txt',
        'pov_input': 'pov-input.md',
    },
    'ai': {
        'command': 'gemini',
        'timeout_seconds': 0,
        'noise_patterns': [],
    },
    'features': {
        'trace_mode': False,
        'file_browser': True,
    },
    'logging': {
        'level': 'info',
        'file': '~/.config/meetsum/error.log',
        'output': 'screen',
    },
    'user': {
        'name': '',
    },
}


def expand_path(path: str) -> str:
    """Expand a leading ~ to the user's home directory."""
    if path and path.startswith('~'):
        return os.path.expanduser(path)
    return path


def find_config_file(config_file: str | None = None) -> Path | None:
    """Return the settings file to load, or None to run on defaults.

    An explicitly requested file (argument or env var) must exist.
    """
    explicit = config_file or os.getenv(CONFIG_ENV_VAR)
    if explicit:
        config_path = Path(expand_path(explicit))
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {explicit}")
        return config_path

    for directory in SEARCH_DIRS:
        candidate = Path(expand_path(directory)) / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(config_file: str | None = None) -> dict:
    """Load configuration from YAML file."""
    config_path = find_config_file(config_file)
    if config_path is None:
        return {}

    with open(config_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    return data


def _get_nested(config: dict, keys: list[str], default=None):
    current = config
    for key in keys:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current


def _default(keys: list[str]):
    return _get_nested(DEFAULTS, keys)


def _setting(config: dict, keys: list[str]):
    value = _get_nested(config, keys, None)
    return _default(keys) if value is None else value


def _string_list(keys: list[str], value) -> list[str]:
    """Normalize a list-of-strings setting, dropping blank entries."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ValueError(f"{'.'.join(keys)} must be a list of strings, got {type(value).__name__}")
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


class Settings:
    """Resolved meetsum settings.

    Passed explicitly to the processor and CLI; nothing here is global.
    """

    def __init__(self, config: dict | None = None, source: Path | None = None):
        config = config or {}
        self.source = source

        self.file_browser_root_dir = str(_setting(config, ['paths', 'file_browser_root_dir']))
        self.automation_dir = str(_setting(config, ['paths', 'automation_dir']))
        self.instructions_file = str(_setting(config, ['paths', 'instructions_file']))

        self.transcript_file = str(_setting(config, ['files', 'transcript']))
        self.pov_input_file = str(_setting(config, ['files', 'pov_input']))

        self.ai_command = str(_setting(config, ['ai', 'command']))
        self.ai_timeout_seconds = float(_setting(config, ['ai', 'timeout_seconds']) or 0)
        self.ai_noise_patterns = _string_list(['ai', 'noise_patterns'], _setting(config, ['ai', 'noise_patterns']) or [])

        self.trace_mode = bool(_setting(config, ['features', 'trace_mode']))
        self.file_browser = bool(_setting(config, ['features', 'file_browser']))

        self.log_level = str(_setting(config, ['logging', 'level'])).lower()
        self.log_file = str(_setting(config, ['logging', 'file']))
        self.log_output = str(_setting(config, ['logging', 'output'])).lower()

        self.user_name = str(_setting(config, ['user', 'name']) or '').strip()

    @classmethod
    def load(cls, config_file: str | None = None) -> 'Settings':
        source = find_config_file(config_file)
        return cls(load_config(str(source)) if source else {}, source=source)

    @property
    def ai_timeout(self) -> float | None:
        """Timeout for the AI command in seconds, or None to wait indefinitely."""
        return self.ai_timeout_seconds if self.ai_timeout_seconds > 0 else None

    def instructions_path(self) -> str:
        return os.path.join(expand_path(self.automation_dir), self.instructions_file)

    def transcript_path(self, meeting_dir: str) -> str:
        return os.path.join(meeting_dir, self.transcript_file)

    def pov_input_path(self, meeting_dir: str) -> str:
        return os.path.join(meeting_dir, self.pov_input_file)

    def log_file_path(self) -> str:
        return expand_path(self.log_file)

    def describe(self) -> list[tuple[str, str, str, str, str]]:
        """Rows of (category, setting, value, default, description) for display."""
        rows = [
            ('Paths', 'file_browser_root_dir', self.file_browser_root_dir,
             ['paths', 'file_browser_root_dir'], 'Base directory for customer meeting folders'),
            ('Paths', 'automation_dir', self.automation_dir,
             ['paths', 'automation_dir'], 'Directory containing LLM instructions'),
            ('Paths', 'instructions_file', self.instructions_file,
             ['paths', 'instructions_file'], 'Name of the AI instructions file'),
            ('Files', 'transcript', self.transcript_file,
             ['files', 'transcript'], 'Transcript filename in meeting directories'),
            ('Files', 'pov_input', self.pov_input_file,
             ['files', 'pov_input'], 'Optional context file for additional meeting details'),
            ('AI', 'command', self.ai_command,
             ['ai', 'command'], 'AI CLI command for text generation'),
            ('AI', 'timeout_seconds', self.ai_timeout_seconds,
             ['ai', 'timeout_seconds'], 'Seconds to wait for the AI command (0 = no limit)'),
            ('AI', 'noise_patterns', ', '.join(self.ai_noise_patterns),
             ['ai', 'noise_patterns'], 'Extra AI output lines to discard'),
            ('Features', 'trace_mode', self.trace_mode,
             ['features', 'trace_mode'], 'Enable detailed output and disable loading indicators'),
            ('Features', 'file_browser', self.file_browser,
             ['features', 'file_browser'], 'Enable interactive picker for directory selection'),
            ('Logging', 'level', self.log_level,
             ['logging', 'level'], 'Log level (debug, info, warn, error)'),
            ('Logging', 'file', self.log_file,
             ['logging', 'file'], 'Path to log file'),
            ('Logging', 'output', self.log_output,
             ['logging', 'output'], 'Log destination (screen, file, both)'),
            ('User', 'name', self.user_name,
             ['user', 'name'], 'Your name, for first-person summaries'),
        ]
        return [
            (category, setting, _display(value), _display(_default(keys)), description)
            for category, setting, value, keys, description in rows
        ]


def _display(value) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, list):
        return ', '.join(str(v) for v in value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
