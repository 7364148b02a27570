"""
Terminal input collection.

TerminalPrompter reads one typed value at a time: constrained free text,
secret text, a single choice from a list, or a yes/no confirmation. Read,
secret-read and write are injected callables (input, getpass.getpass and
print by default), which lets the authorization flow run against scripted
answers.

A closed stream or OS-level failure while reading raises InputError.
Constraint failures on non-sensitive text are reported and re-prompted;
they never leave this module.
"""

import getpass
import re
from typing import Callable, NamedTuple, Optional, Sequence

from quickpay.engine.errors import InputError, ProtocolError, ValidationError


class Choice(NamedTuple):
    label: str
    value: str


class TextRule(NamedTuple):
    """A server-supplied pattern with its localized failure message."""

    pattern: str
    message: str


def validate_text(
    value: str,
    min_length: int,
    max_length: int,
    rules: Sequence[tuple[re.Pattern, str]] = (),
) -> None:
    """
    Check a text answer against its length bounds and patterns.

    Raises:
        ValidationError: With the length message, or the message of the
            first pattern that does not match.
    """
    length = len(value)
    if length < min_length or length > max_length:
        raise ValidationError(
            f"Should have length between {min_length} and {max_length}, was {length}"
        )
    for pattern, message in rules:
        if not pattern.search(value):
            raise ValidationError(message)


def compile_rules(rules: Sequence[TextRule]) -> list[tuple[re.Pattern, str]]:
    compiled = []
    for rule in rules:
        try:
            compiled.append((re.compile(rule.pattern), rule.message))
        except re.error as e:
            raise ProtocolError(f"Server sent an invalid input regex {rule.pattern!r}: {e}") from e
    return compiled


class TerminalPrompter:
    """Single-writer terminal prompts."""

    # Reads block the event loop; only one flow may run on it at a time.

    def __init__(
        self,
        read: Callable[[str], str] = input,
        read_secret: Callable[[str], str] = getpass.getpass,
        write: Callable[[str], None] = print,
    ):
        self._read = read
        self._read_secret = read_secret
        self._write = write

    def show(self, text: str) -> None:
        self._write(text)

    def collect_text(
        self,
        prompt: str,
        min_length: int,
        max_length: int,
        rules: Sequence[TextRule] = (),
        sensitive: bool = False,
    ) -> str:
        """
        Read a text answer.

        Sensitive answers are read without echo and are not validated
        client-side. Other answers are re-prompted until they satisfy the
        length bounds and every rule.
        """
        if sensitive:
            return self._ask(self._read_secret, f"{prompt}: ")

        compiled = compile_rules(rules)
        while True:
            value = self._ask(self._read, f"{prompt}: ")
            try:
                validate_text(value, min_length, max_length, compiled)
            except ValidationError as e:
                self._write(f"✘ {e}")
                continue
            return value

    def collect_choice(self, prompt: str, options: Sequence[Choice]) -> str:
        """Present numbered labels in order and return the chosen entry's value."""
        if not options:
            raise InputError(f"No options to choose from for {prompt!r}")

        self._write(prompt)
        for number, option in enumerate(options, start=1):
            self._write(f"  {number}. {option.label}")

        while True:
            answer = self._ask(self._read, f"Select option (1-{len(options)}): ").strip()
            index = _parse_index(answer, len(options))
            if index is None:
                self._write(f"✘ Please enter a number between 1 and {len(options)}")
                continue
            return options[index].value

    def confirm(self, prompt: str) -> bool:
        while True:
            answer = self._ask(self._read, f"{prompt} [y/n]: ").strip().lower()
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            self._write("✘ Please answer y or n")

    def _ask(self, reader: Callable[[str], str], prompt: str) -> str:
        try:
            return reader(prompt)
        except EOFError as e:
            raise InputError("Input stream closed") from e
        except OSError as e:
            raise InputError(f"Terminal interaction failed: {e}") from e


def _parse_index(answer: str, count: int) -> Optional[int]:
    try:
        number = int(answer)
    except ValueError:
        return None
    if 1 <= number <= count:
        return number - 1
    return None
