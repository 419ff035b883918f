#!/usr/bin/env python3
# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "pyyaml>=6.0.0",
# ]
# ///
"""
meetsum - Meeting Summary Generator

Generates a structured customer meeting summary from a transcript using an AI
CLI (gemini by default).

Run with: uv run meetsum.py [meeting_directory]

Other commands:
  meetsum check             verify the AI CLI is installed and working
  meetsum config            show current settings
  meetsum validate [DIR]    check a meeting directory (or the configured paths)
  meetsum docs gemini       open the Gemini CLI setup docs
  meetsum version           show version
"""

import argparse
import itertools
import logging
import os
import shlex
import shutil
import subprocess
import sys
import threading
import webbrowser

from meetsum_config import Settings, expand_path
from summary_processor import (
    AIInvocationFailed,
    EmptySummary,
    MeetsumError,
    RenameConflict,
    RenameFailed,
    SummaryProcessor,
    find_dated_transcripts,
)

__version__ = '0.1.0'

GEMINI_DOCS_URL = 'https://github.com/google-gemini/gemini-cli?tab=readme-ov-file#-authentication-options'
HOMEBREW_URL = 'https://brew.sh/'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}

COMMON_MEETING_FILES = [
    'notes.md',
    'agenda.md',
    'recording.mp4',
    'recording.m4a',
    'attendees.txt',
]

logger = logging.getLogger('meetsum')


def configure_logging(settings: Settings, trace: bool = False) -> logging.Logger:
    """Send log records to the screen, the log file, or both."""
    level = LOG_LEVELS.get(settings.log_level, logging.INFO)
    if trace or settings.trace_mode:
        level = logging.DEBUG

    handlers: list[logging.Handler] = []
    if settings.log_output in ('file', 'both'):
        file_handler = _open_log_file(settings.log_file_path())
        if file_handler is not None:
            handlers.append(file_handler)
    if settings.log_output != 'file' or not handlers:
        handlers.append(logging.StreamHandler(sys.stderr))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    logger.setLevel(level)
    return logger


def _open_log_file(path: str) -> logging.Handler | None:
    try:
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        return logging.FileHandler(path, encoding='utf-8')
    except OSError as e:
        print(f"Warning: could not open log file {path}: {e}", file=sys.stderr)
        return None


class Spinner:
    """Animate a status line on a background thread until stopped."""

    frames = '|/-\\'

    def __init__(self, message: str, stream=None, interval: float = 0.1):
        self.message = message
        self.stream = stream or sys.stdout
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def _loop(self):
        for frame in itertools.cycle(self.frames):
            if self._stop_event.is_set():
                break
            self.stream.write(f"\r{frame} {self.message}")
            self.stream.flush()
            self._stop_event.wait(self.interval)
        self.stream.write('\r' + ' ' * (len(self.message) + 2) + '\r')
        self.stream.flush()

    def __enter__(self):
        self._thread = threading.Thread(target=self._loop, name='spinner', daemon=True)
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self._stop_event.set()
        if self._thread:
            self._thread.join()
        return False


def confirm(question: str, default: bool = False) -> bool:
    suffix = ' [Y/n] ' if default else ' [y/N] '
    answer = input(question + suffix).strip().lower()
    if not answer:
        return default
    return answer in ('y', 'yes')


def resolve_directory(path: str) -> str:
    expanded = expand_path(path.strip())
    if not os.path.isdir(expanded):
        raise FileNotFoundError(f"directory '{path}' does not exist")
    return os.path.abspath(expanded)


def prompt_user_name() -> str:
    print("👤 Enter your name (for first-person perspective):")
    while True:
        name = input("Your Name: ").strip()
        if name:
            return name
        print("  Name is required.")


def select_directory(root_dir: str) -> str:
    """Numbered picker: walk down from root_dir until the user picks a directory."""
    current = resolve_directory(root_dir)
    while True:
        subdirs = sorted(
            entry.name for entry in os.scandir(current)
            if entry.is_dir() and not entry.name.startswith('.')
        )
        print(f"\n📁 {current}")
        print("  0. [use this directory]")
        for i, name in enumerate(subdirs, 1):
            print(f"  {i}. {name}/")
        print("  ..  [parent directory]")

        choice = input("Select: ").strip()
        if choice == '0':
            return current
        if choice == '..':
            current = os.path.dirname(current)
            continue
        if choice.isdigit() and 1 <= int(choice) <= len(subdirs):
            current = os.path.join(current, subdirs[int(choice) - 1])
            continue
        print("  Invalid selection.")


def get_meeting_directory(settings: Settings, meeting_dir: str | None) -> str:
    if meeting_dir:
        return resolve_directory(meeting_dir)

    if settings.file_browser:
        return select_directory(settings.file_browser_root_dir)

    print("📁 Enter the meeting directory path:")
    input_path = input("Meeting Directory Path (~/Documents/Customers/[Customer]/[date]): ").strip()
    if not input_path:
        raise ValueError("no directory path provided")
    return resolve_directory(input_path)


def print_install_help(command: str) -> None:
    print(f"❌ {command} is required but not installed")
    print()
    print("💡 Installation options:")
    if command == 'gemini':
        print("  • brew install gemini-cli (Homebrew: " + HOMEBREW_URL + ")")
        print("  • npm install -g @google/gemini-cli")
        print("  • Run 'meetsum docs gemini' for authentication setup")
    print("  • Run 'meetsum check' to verify installation")


def ai_command_available(command: str) -> bool:
    parts = shlex.split(command)
    return bool(parts) and shutil.which(parts[0]) is not None


def generate_with_retry(processor: SummaryProcessor, settings: Settings) -> str | None:
    """Generate the summary, offering a retry when the AI step fails."""
    message = f"🧠 {settings.ai_command} is processing your meeting transcript..."
    while True:
        try:
            if settings.trace_mode:
                print(message)
                return processor.generate_summary()
            with Spinner(message):
                return processor.generate_summary()
        except (AIInvocationFailed, EmptySummary) as e:
            print(f"❌ Failed to generate summary: {e}")
            if settings.log_output in ('file', 'both'):
                print(f"💡 Check the log file for detailed error output: {settings.log_file_path()}")
            if not confirm("Retry?"):
                return None


def run_summary(settings: Settings, args) -> int:
    if not ai_command_available(settings.ai_command):
        print_install_help(settings.ai_command)
        return 1

    print("🤖 Meeting Summary Generator")
    print()

    user_name = args.name or settings.user_name or prompt_user_name()
    meeting_dir = get_meeting_directory(settings, args.meeting_dir)

    processor = SummaryProcessor(settings, logger, user_name=user_name, meeting_dir=meeting_dir)
    try:
        processor.validate_required_files()
    except MeetsumError as e:
        print(f"❌ {e}")
        return 1

    print(f"📁 Meeting Directory: {os.path.basename(meeting_dir)}")
    print(f"📄 Transcript: ✅ {os.path.basename(processor.transcript_path)}")
    print("📋 Instructions: ✅ Found")

    optional_files = processor.get_optional_files()
    if optional_files:
        print("🎯 Context files found:")
        for name in optional_files:
            print(f"  📝 {name}")
    else:
        print(f"⚠️  No context files found ({settings.pov_input_file})")

    print()
    print(f"🤖 AI command: {settings.ai_command}")
    print(f"📍 Working Directory: {meeting_dir}")
    print("⚡ Starting summary generation...")
    print()

    summary = generate_with_retry(processor, settings)
    if summary is None:
        return 1

    try:
        output_path = processor.save_summary(summary)
    except OSError as e:
        print(f"❌ Failed to save summary: {e}")
        return 1

    print(f"📄 Summary file: {os.path.basename(output_path)}")
    print(f"📍 Location: {meeting_dir}")

    try:
        renamed_to = processor.rename_transcript_file()
    except (RenameConflict, RenameFailed) as e:
        print(f"⚠️  Could not rename transcript: {e}")
        print("   The summary was saved; rename the transcript by hand if needed.")
        renamed_to = ''
    if renamed_to:
        print(f"📝 Transcript renamed to: {renamed_to}")

    print()
    print("🎉 All done! Your meeting summary is ready.")
    return 0


def run_check(settings: Settings, args) -> int:
    print("🔍 Dependency Check")
    print()

    all_good = True
    command = settings.ai_command
    if ai_command_available(command):
        print(f"🤖 {command}: ✅ Installed")
        ok, message = validate_ai_setup(command)
        if ok:
            print(f"🔧 {command} configuration: ✅ Functional")
        else:
            print(f"🔧 {command} configuration: ⚠️  May need configuration ({message})")
            print("   Run 'meetsum docs gemini' for setup help")
    else:
        print(f"🤖 {command}: ❌ Not installed")
        all_good = False

    if shutil.which('git'):
        print("📋 git: ✅ Available")
    else:
        print("📋 git: ⚠️  Not found (optional)")

    print()
    if all_good:
        print("🎉 All dependencies are ready!")
        return 0
    print("❌ Some dependencies are missing")
    print_install_help(command)
    return 1


def validate_ai_setup(command: str) -> tuple[bool, str]:
    """Run '<command> --help' as a smoke test."""
    args = shlex.split(command) + ['--help']
    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=30)
    except subprocess.TimeoutExpired:
        return False, "timed out"
    except OSError as e:
        return False, str(e)
    if result.returncode != 0:
        return False, (result.stderr or '').strip() or f"exit status {result.returncode}"
    return True, "ok"


def print_table(headers: list[str], rows: list[tuple]) -> None:
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))
    line = '  '.join(h.ljust(widths[i]) for i, h in enumerate(headers))
    print(line)
    print('  '.join('-' * w for w in widths))
    for row in rows:
        print('  '.join(str(cell).ljust(widths[i]) for i, cell in enumerate(row)))


def run_config(settings: Settings, args) -> int:
    print("⚙️  Configuration")
    print(f"Source: {settings.source or 'defaults (no settings.yaml found)'}")
    print()
    print_table(['Category', 'Setting', 'Value', 'Default', 'Description'], settings.describe())
    return 0


def validate_meeting_directory(settings: Settings, meeting_dir: str) -> list[tuple]:
    transcript_path = settings.transcript_path(meeting_dir)
    if not os.path.isfile(transcript_path):
        dated = find_dated_transcripts(meeting_dir)
        transcript_path = dated[0] if dated else ''

    pov_path = settings.pov_input_path(meeting_dir)
    rows = [
        (settings.transcript_file, 'yes', transcript_path,
         'Meeting transcript (or YYYY-MM-DD-transcript.txt)'),
        (settings.pov_input_file, 'no', pov_path if os.path.isfile(pov_path) else '',
         'Point of view input file - optional context'),
    ]
    for name in COMMON_MEETING_FILES:
        path = os.path.join(meeting_dir, name)
        if os.path.isfile(path):
            rows.append((name, 'no', path, 'Additional meeting file found'))
    return rows


def validate_configuration(settings: Settings) -> list[tuple]:
    checks = [
        ('Instructions File', settings.instructions_path(), 'AI instructions for summary generation'),
        ('Customers Directory', expand_path(settings.file_browser_root_dir), 'Base directory for customer meeting folders'),
        ('Automation Directory', expand_path(settings.automation_dir), 'Directory containing automation files'),
    ]
    return [
        (name, 'yes', path if os.path.exists(path) else '', description)
        for name, path, description in checks
    ]


def run_validate(settings: Settings, args) -> int:
    if args.directory:
        meeting_dir = resolve_directory(args.directory)
        print(f"🔍 Validating meeting directory: {meeting_dir}")
        rows = validate_meeting_directory(settings, meeting_dir)
    else:
        print("🔍 Validating configuration")
        rows = validate_configuration(settings)

    print()
    print_table(
        ['File', 'Required', 'Status', 'Description'],
        [(name, required, f"✅ {path}" if path else '❌ missing', description)
         for name, required, path, description in rows],
    )

    missing_required = [row for row in rows if row[1] == 'yes' and not row[2]]
    return 1 if missing_required else 0


def open_url(url: str) -> None:
    if not webbrowser.open(url):
        print("⚠️  Failed to open browser automatically")
    print(f"Please visit: {url}")


def run_docs(settings: Settings, args) -> int:
    if args.topic == 'gemini':
        print("📖 Gemini CLI Documentation: setup and authentication guide")
        open_url(GEMINI_DOCS_URL)
    else:
        print("🍺 Homebrew website: manual installation guide")
        open_url(HOMEBREW_URL)
    return 0


def run_version(settings: Settings, args) -> int:
    print(f"meetsum {__version__}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='meetsum',
        description='Generate a structured meeting summary from a transcript using an AI CLI.',
        epilog='Commands: check, config, validate [DIR], docs {gemini,brew}, version.',
    )
    parser.add_argument('meeting_dir', nargs='?', default=None,
                        help='Meeting directory containing transcript.txt. Default: pick interactively.')
    parser.add_argument('--config', default=None,
                        help='Config file (default: settings.yaml in ., ~/.config/meetsum or /etc/meetsum).')
    parser.add_argument('--trace', action='store_true',
                        help='Run without spinners and with debug logging.')
    parser.add_argument('--name', default=None,
                        help='Your name, for first-person perspective. Default: user.name from config, or prompt.')
    return parser


def build_command_parser(command: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=f'meetsum {command}')
    parser.add_argument('--config', default=None, help='Config file path.')
    parser.add_argument('--trace', action='store_true', help='Enable debug logging.')
    if command == 'validate':
        parser.add_argument('directory', nargs='?', default=None,
                            help='Meeting directory to validate. Default: validate configured paths.')
    elif command == 'docs':
        parser.add_argument('topic', choices=['gemini', 'brew'], help='Documentation to open.')
    return parser


COMMANDS = {
    'check': run_check,
    'config': run_config,
    'validate': run_validate,
    'docs': run_docs,
    'version': run_version,
}


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)

    if argv and argv[0] in COMMANDS:
        command = argv[0]
        args = build_command_parser(command).parse_args(argv[1:])
        handler = COMMANDS[command]
    else:
        args = build_parser().parse_args(argv)
        handler = run_summary

    try:
        settings = Settings.load(args.config)
    except (OSError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    if args.trace:
        settings.trace_mode = True
    configure_logging(settings, trace=args.trace)
    logger.debug(f"Settings source: {settings.source or 'defaults'}")

    try:
        return handler(settings, args)
    except KeyboardInterrupt:
        print()
        return 130
    except EOFError:
        print()
        print("❌ No input available")
        return 1
    except (OSError, ValueError, MeetsumError) as e:
        print(f"❌ {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
