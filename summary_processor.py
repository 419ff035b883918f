#!/usr/bin/env python3
# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "pyyaml>=6.0.0",
# ]
# ///
"""
Meeting Summary Processor

Locates the transcript in a meeting directory, builds the summarization prompt,
pipes it to the AI CLI, extracts the markdown summary from the tool's output,
and writes <date>-<customer>-cadence-call-summary.md next to the transcript.

Meeting directories are expected to look like .../Customers/<Customer>/<YYYY-MM-DD>/.
"""

import glob
import os
import re
import shlex
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from meetsum_config import Settings

CUSTOMERS_SEGMENT = 'Customers'
UNDATED = 'UNDATED'
DATED_TRANSCRIPT_GLOB = '*-transcript.txt'
DATED_TRANSCRIPT_RE = re.compile(r'[0-9]{4}-[0-9]{2}-[0-9]{2}-transcript\.txt')
DATE_SEGMENT_RE = re.compile(r'[0-9]{4}-[0-9]{2}-[0-9]{2}')
SUMMARY_SUFFIX = 'cadence-call-summary.md'
CONTEXT_HEADER = 'CONTEXT GUIDE:'

PROMPT_TEMPLATE = """{instructions}

Process the transcript in transcript.txt and generate a structured meeting summary following the provided instructions. Use the current working directory path to derive the customer name. Write the summary from {user_name}'s first-person perspective.

The meeting date should be: {meeting_date}
The customer name should be: {customer_name} (uppercase: {customer_name_upper})

TRANSCRIPT:
{transcript}

{context}"""


class MeetsumError(Exception):
    """Base class for meeting summary failures."""


class TranscriptNotFound(MeetsumError):
    def __init__(self, meeting_dir: str, patterns: list[str]):
        self.meeting_dir = meeting_dir
        self.patterns = patterns
        super().__init__(
            f"no transcript file found in {meeting_dir} (looked for {' and '.join(patterns)})"
        )


class InstructionsNotFound(MeetsumError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"instructions file not found at {path}")


class AIInvocationFailed(MeetsumError):
    def __init__(self, command: str, error: Exception, stderr: str = ''):
        self.command = command
        self.error = error
        self.stderr = stderr
        message = f"AI command '{command}' failed: {error}"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        super().__init__(message)


class EmptySummary(MeetsumError):
    def __init__(self, command: str):
        self.command = command
        super().__init__(
            f"no usable output from '{command}'. Check the AI CLI installation and authentication."
        )


class RenameConflict(MeetsumError):
    def __init__(self, destination: str):
        self.destination = destination
        super().__init__(f"cannot rename transcript: {os.path.basename(destination)} already exists")


class RenameFailed(MeetsumError):
    def __init__(self, source: str, destination: str, error: OSError):
        self.source = source
        self.destination = destination
        self.error = error
        super().__init__(f"failed to rename transcript {source} to {destination}: {error}")


class CommandFailed(Exception):
    """Non-zero exit from the AI command."""

    def __init__(self, returncode: int):
        self.returncode = returncode
        super().__init__(f"exit status {returncode}")


@dataclass
class MeetingContext:
    meeting_dir: str
    user_name: str = ''
    transcript_path: str | None = None


@dataclass(frozen=True)
class ExtractedMetadata:
    customer_name: str
    customer_name_upper: str
    meeting_date: str

    @property
    def title_date(self) -> str:
        return self.meeting_date or UNDATED


@dataclass
class AIInvocationResult:
    stdout: str
    stderr: str
    error: Exception | None = None


# ============================================================================
# Path metadata
# ============================================================================

def _path_parts(meeting_dir: str) -> list[str]:
    return [part for part in Path(meeting_dir).parts if part not in ('', os.sep)]


def is_valid_date(value: str) -> bool:
    """True for a strict YYYY-MM-DD string naming a real calendar day."""
    if len(value) != 10 or value[4] != '-' or value[7] != '-':
        return False
    if not DATE_SEGMENT_RE.fullmatch(value):
        return False
    try:
        datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        return False
    return True


def extract_customer_name(meeting_dir: str) -> tuple[str, str]:
    """Return (customer_name, customer_name_upper) for a meeting directory.

    Uses the segment after Customers/ when present, otherwise the parent
    directory's name.
    """
    parts = _path_parts(meeting_dir)
    customer_name = ''
    if CUSTOMERS_SEGMENT in parts:
        index = parts.index(CUSTOMERS_SEGMENT)
        if index + 1 < len(parts):
            customer_name = parts[index + 1]

    if not customer_name:
        customer_name = Path(meeting_dir).parent.name

    return customer_name, customer_name.upper()


def extract_date_from_path(meeting_dir: str) -> str:
    """Return the first YYYY-MM-DD path segment, or '' when the path is undated."""
    for part in _path_parts(meeting_dir):
        if is_valid_date(part):
            return part
    return ''


def extract_metadata(meeting_dir: str) -> ExtractedMetadata:
    customer_name, customer_name_upper = extract_customer_name(meeting_dir)
    return ExtractedMetadata(
        customer_name=customer_name,
        customer_name_upper=customer_name_upper,
        meeting_date=extract_date_from_path(meeting_dir),
    )


# ============================================================================
# Transcript lookup
# ============================================================================

def is_dated_transcript_name(filename: str) -> bool:
    return bool(DATED_TRANSCRIPT_RE.fullmatch(filename)) and is_valid_date(filename[:10])


def find_dated_transcripts(meeting_dir: str) -> list[str]:
    """Dated transcripts in the directory, latest date first."""
    pattern = os.path.join(glob.escape(meeting_dir), DATED_TRANSCRIPT_GLOB)
    matches = [
        path for path in glob.glob(pattern)
        if os.path.isfile(path) and is_dated_transcript_name(os.path.basename(path))
    ]
    return sorted(matches, key=os.path.basename, reverse=True)


def find_transcript_file(meeting_dir: str, transcript_name: str = 'transcript.txt') -> str:
    """Locate the transcript: the standard name first, then YYYY-MM-DD-transcript.txt."""
    standard_path = os.path.join(meeting_dir, transcript_name)
    if os.path.isfile(standard_path):
        return standard_path

    dated = find_dated_transcripts(meeting_dir)
    if dated:
        return dated[0]

    raise TranscriptNotFound(meeting_dir, [transcript_name, 'YYYY-MM-DD-transcript.txt'])


# ============================================================================
# Prompt
# ============================================================================

def format_context(content: str) -> str:
    return f"{CONTEXT_HEADER}\n{content}"


def build_prompt(instructions: str, transcript: str, context: str,
                 user_name: str, metadata: ExtractedMetadata) -> str:
    """Compose the prompt sent to the AI CLI. context is '' or a formatted context block."""
    return PROMPT_TEMPLATE.format(
        instructions=instructions,
        user_name=user_name,
        meeting_date=metadata.title_date,
        customer_name=metadata.customer_name,
        customer_name_upper=metadata.customer_name_upper,
        transcript=transcript,
        context=context,
    )


# ============================================================================
# AI invocation
# ============================================================================

def run_ai_command(command: str, prompt: str, cwd: str | None = None,
                   timeout: float | None = None) -> AIInvocationResult:
    """Run the AI CLI with the prompt on stdin, keeping stdout and stderr apart.

    Failures (missing executable, non-zero exit, timeout) are returned in
    result.error rather than raised.
    """
    args = shlex.split(command)
    try:
        result = subprocess.run(
            args,
            input=prompt,
            capture_output=True,
            text=True,
            encoding='utf-8',
            errors='replace',
            cwd=cwd,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        return AIInvocationResult(_as_text(e.stdout), _as_text(e.stderr), e)
    except OSError as e:
        return AIInvocationResult('', '', e)

    error = CommandFailed(result.returncode) if result.returncode != 0 else None
    return AIInvocationResult(result.stdout or '', result.stderr or '', error)


def _as_text(value) -> str:
    if value is None:
        return ''
    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')
    return value


# ============================================================================
# Output cleanup
# ============================================================================

DEFAULT_NOISE_MARKERS = (
    'Loaded cached credentials',
    'Error executing tool',
    'Tool "write_file" not found',
    'I was unable to create',
    'Here is the content',
    'You can save it as',
)


class OutputSanitizer:
    """Pull the markdown summary out of raw AI CLI stdout.

    The CLI may wrap the summary in a ```markdown fence, print it bare starting
    at a title line, or surround it with tool chatter. Lines containing a noise
    marker are always dropped.
    """

    fence_open = '```markdown'
    fence = '```'

    def __init__(self, noise_markers=DEFAULT_NOISE_MARKERS,
                 title_markers=('_SUMMARY_',), title_prefixes=('*_',)):
        self.noise_markers = tuple(marker for marker in noise_markers if marker)
        self.title_markers = tuple(title_markers)
        self.title_prefixes = tuple(title_prefixes)

    def is_noise(self, line: str) -> bool:
        return any(marker in line for marker in self.noise_markers)

    def is_title(self, line: str) -> bool:
        return (any(marker in line for marker in self.title_markers)
                or line.startswith(self.title_prefixes))

    def extract(self, output: str) -> list[str]:
        lines = []
        in_fence = False
        found_start = False

        for line in output.split('\n'):
            if self.is_noise(line):
                continue

            if line.startswith(self.fence_open) and not in_fence:
                in_fence = True
                found_start = True
                continue

            if line.startswith(self.fence) and in_fence:
                break

            if in_fence:
                lines.append(line)
            elif not found_start and self.is_title(line):
                lines.append(line)
                found_start = True
            elif found_start:
                lines.append(line)

        return lines

    def salvage(self, output: str) -> str:
        """Keep whatever follows the last noise line, minus fence markers."""
        cleaned = output
        truncated = True
        while truncated:
            truncated = False
            for marker in self.noise_markers:
                idx = cleaned.find(marker)
                if idx == -1:
                    continue
                end_of_line = cleaned.find('\n', idx)
                cleaned = cleaned[end_of_line + 1:] if end_of_line != -1 else ''
                truncated = True

        cleaned = cleaned.replace(self.fence_open, '').replace(self.fence, '')
        return cleaned.strip()

    def clean(self, output: str) -> str:
        """Return the summary markdown, or '' when nothing usable was found."""
        lines = self.extract(output)
        if lines:
            return '\n'.join(lines).strip()
        return self.salvage(output)


def clean_ai_output(output: str, sanitizer: OutputSanitizer | None = None) -> str:
    return (sanitizer or OutputSanitizer()).clean(output)


# ============================================================================
# Output files
# ============================================================================

def generate_output_filename(metadata: ExtractedMetadata) -> str:
    if metadata.meeting_date:
        return f"{metadata.meeting_date}-{metadata.customer_name}-{SUMMARY_SUFFIX}"
    return f"{metadata.customer_name}-{SUMMARY_SUFFIX}"


def write_summary(meeting_dir: str, content: str) -> str:
    """Write the summary into the meeting directory, overwriting any previous one."""
    filename = generate_output_filename(extract_metadata(meeting_dir))
    output_path = os.path.join(meeting_dir, filename)

    if not content.endswith('\n'):
        content += '\n'

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(content)
    return output_path


def rename_transcript_file(context: MeetingContext) -> str:
    """Rename the transcript to <date>-transcript.txt.

    Returns the new filename, or '' when skipped (no transcript, already dated,
    or no date in the directory path).
    """
    if not context.transcript_path:
        return ''

    if DATED_TRANSCRIPT_RE.fullmatch(os.path.basename(context.transcript_path)):
        return ''

    date = extract_date_from_path(context.meeting_dir)
    if not date:
        return ''

    new_filename = f"{date}-transcript.txt"
    new_path = os.path.join(context.meeting_dir, new_filename)
    if os.path.exists(new_path):
        raise RenameConflict(new_path)

    try:
        os.rename(context.transcript_path, new_path)
    except OSError as e:
        raise RenameFailed(context.transcript_path, new_path, e) from e

    context.transcript_path = new_path
    return new_filename


# ============================================================================
# Processor
# ============================================================================

def read_text(path: str) -> str:
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


class SummaryProcessor:
    """Generates the summary for one meeting directory."""

    def __init__(self, settings: Settings, logger=None, user_name: str = '',
                 meeting_dir: str = ''):
        self.settings = settings
        self.logger = logger
        self.context = MeetingContext(meeting_dir=meeting_dir, user_name=user_name)
        self.sanitizer = OutputSanitizer(
            noise_markers=DEFAULT_NOISE_MARKERS + tuple(settings.ai_noise_patterns)
        )

    @property
    def meeting_dir(self) -> str:
        return self.context.meeting_dir

    @property
    def transcript_path(self) -> str | None:
        return self.context.transcript_path

    def set_user_name(self, name: str) -> None:
        self.context.user_name = name

    def set_meeting_dir(self, meeting_dir: str) -> None:
        self.context = MeetingContext(meeting_dir=meeting_dir, user_name=self.context.user_name)

    def _debug(self, message: str) -> None:
        if self.logger is not None:
            self.logger.debug(message)

    def find_transcript_file(self) -> str:
        return find_transcript_file(self.meeting_dir, self.settings.transcript_file)

    def validate_required_files(self) -> None:
        """Locate the transcript and check the instructions file exists."""
        self.context.transcript_path = self.find_transcript_file()
        self._debug(f"Using transcript: {self.context.transcript_path}")

        instructions_path = self.settings.instructions_path()
        if not os.path.isfile(instructions_path):
            raise InstructionsNotFound(instructions_path)

    def get_optional_files(self) -> list[str]:
        pov_path = self.settings.pov_input_path(self.meeting_dir)
        return [self.settings.pov_input_file] if os.path.isfile(pov_path) else []

    def load_instructions(self) -> str:
        instructions_path = self.settings.instructions_path()
        try:
            return read_text(instructions_path)
        except FileNotFoundError as e:
            raise InstructionsNotFound(instructions_path) from e

    def load_transcript(self) -> str:
        if not self.context.transcript_path:
            self.context.transcript_path = self.find_transcript_file()
        return read_text(self.context.transcript_path)

    def load_context(self) -> str:
        pov_path = self.settings.pov_input_path(self.meeting_dir)
        if not os.path.isfile(pov_path):
            return ''
        return format_context(read_text(pov_path))

    def extract_metadata(self) -> ExtractedMetadata:
        return extract_metadata(self.meeting_dir)

    def build_prompt(self) -> str:
        instructions = self.load_instructions()
        transcript = self.load_transcript()
        context = self.load_context()
        return build_prompt(instructions, transcript, context,
                            self.context.user_name, self.extract_metadata())

    def _log_command_error(self, result: AIInvocationResult) -> None:
        if self.logger is None:
            return
        self.logger.error(
            f"AI command failed: command={self.settings.ai_command} "
            f"error={result.error} stderr={result.stderr.strip()!r} "
            f"meeting_dir={self.meeting_dir}"
        )

    def generate_summary(self) -> str:
        """Run the AI CLI and return the cleaned summary.

        Raises AIInvocationFailed on a failed run and EmptySummary when the
        output holds nothing usable.
        """
        prompt = self.build_prompt()
        self._debug(f"Prompt length: {len(prompt)} chars")

        result = run_ai_command(
            self.settings.ai_command,
            prompt,
            cwd=self.meeting_dir,
            timeout=self.settings.ai_timeout,
        )
        if result.error is not None:
            self._log_command_error(result)
            raise AIInvocationFailed(self.settings.ai_command, result.error, result.stderr)

        if result.stderr.strip():
            self._debug(f"AI command stderr: {result.stderr.strip()}")

        summary = self.sanitizer.clean(result.stdout)
        if not summary:
            if self.logger is not None:
                self.logger.error(
                    f"AI command produced no usable output: command={self.settings.ai_command} "
                    f"meeting_dir={self.meeting_dir}"
                )
            raise EmptySummary(self.settings.ai_command)
        return summary

    def output_filename(self) -> str:
        return generate_output_filename(self.extract_metadata())

    def save_summary(self, content: str) -> str:
        output_path = write_summary(self.meeting_dir, content)
        self._debug(f"Wrote summary: {output_path}")
        return output_path

    def rename_transcript_file(self) -> str:
        return rename_transcript_file(self.context)
