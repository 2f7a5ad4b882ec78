from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence

from .base import BaseNotifier, NotifyError
from .registry import register

Executor = Callable[[Sequence[str]], None]

_SCRIPT = """
tell application "Messages"
	set targetService to 1st service whose service type = iMessage
	set targetBuddy to buddy "{recipient}" of targetService
	send "{message}" to targetBuddy
end tell"""


def escape_applescript(s: str) -> str:
    """Escape text for use inside an AppleScript double-quoted string."""
    return s.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def build_script(recipient: str, message: str) -> str:
    return _SCRIPT.format(recipient=escape_applescript(recipient), message=escape_applescript(message))


def run_command(argv: Sequence[str]) -> None:
    subprocess.run(list(argv), check=True, capture_output=True, timeout=60)


@register
class IMessageNotifier(BaseNotifier):
    """
    macOS Messages.app delivery via `osascript -e <script>`.

    `executor` runs the argv; swap it out in tests to capture the script
    instead of launching osascript.
    """

    kind = "imessage"

    def __init__(self, executor: Executor | None = None) -> None:
        self._executor = executor or run_command

    def send(self, recipient: str, text: str) -> None:
        argv = ["osascript", "-e", build_script(recipient, text)]
        try:
            self._executor(argv)
        except (OSError, subprocess.SubprocessError) as e:
            raise NotifyError(f"iMessage to {recipient} failed: {e}") from e
