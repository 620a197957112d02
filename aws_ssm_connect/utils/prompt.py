from typing import Any, Callable, Sequence

from rich.console import Console
from rich.markup import escape

from aws_ssm_connect.exceptions import SelectionError
from aws_ssm_connect.utils.logger import get_logger

logger = get_logger(__name__)
console = Console()

# Sentinel: no fallback, an invalid answer raises SelectionError
NO_FALLBACK = object()


def read_line(prompt: str) -> str:
    """Reads one line from stdin. EOF counts as a blank answer."""
    try:
        return console.input(prompt)
    except EOFError:
        return ""


def parse_selection(answer: str, count: int):
    """Returns the 0-based index for a 1-based menu answer, or None."""
    try:
        number = int(answer.strip())
    except ValueError:
        return None
    if 1 <= number <= count:
        return number - 1
    return None


def choose(
    items: Sequence[Any],
    title: str,
    prompt: str,
    label: Callable[[Any], str] = str,
    fallback: Any = NO_FALLBACK,
    noun: str = "item",
):
    """
    Shows a numbered menu of ``items`` and returns the one picked.

    With a ``fallback`` a blank answer returns it silently and an invalid
    answer returns it with a warning. Without one, anything that is not a
    valid number raises SelectionError.
    """
    console.print(f"\n{escape(title)}:")
    for number, item in enumerate(items, start=1):
        console.print(f"{number}. {escape(label(item))}")

    answer = read_line(f"\n{prompt}: ").strip()

    if not answer and fallback is not NO_FALLBACK:
        return fallback

    index = parse_selection(answer, len(items))
    if index is not None:
        return items[index]

    if fallback is NO_FALLBACK:
        raise SelectionError(f"invalid {noun} selection: '{answer}'")

    logger.warning(f"Invalid selection. Using '{fallback}'.")
    return fallback
