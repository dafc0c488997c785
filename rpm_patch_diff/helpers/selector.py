import click
import re
from datetime import date
from typing import List, Optional, Protocol, Sequence
import logging

logger = logging.getLogger(__name__)

ALL = "all"
NONE = "none"


class SelectionException(Exception):
    pass


class Prompter(Protocol):
    def pick_one(self, options: Sequence[str], header: str) -> str: ...

    def pick_many(
        self, options: Sequence[str], header: str, limit: Optional[int] = None
    ) -> List[str]: ...

    def confirm(self, question: str, default: bool = False) -> bool: ...


class ClickPrompter:
    """Numbered list prompts on the terminal.

    Options may be chosen by their number or by their text. Multiple choices are
    separated by commas or whitespace.
    """

    def _show(self, options: Sequence[str], header: str) -> None:
        click.echo(header)
        for idx, option in enumerate(options, start=1):
            click.echo(f"  {idx:>3}) {option}")

    def _lookup(self, options: Sequence[str], answer: str) -> Optional[str]:
        if answer in options:
            return answer
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        return None

    def pick_one(self, options: Sequence[str], header: str) -> str:
        self._show(options, header)
        while True:
            answer = click.prompt("Choice", type=str).strip()
            choice = self._lookup(options, answer)
            if choice is not None:
                return choice
            click.echo(f"Invalid choice '{answer}'.", err=True)

    def pick_many(
        self, options: Sequence[str], header: str, limit: Optional[int] = None
    ) -> List[str]:
        self._show(options, header)
        while True:
            answer = click.prompt(
                "Choices (separated by commas or spaces)", default="", show_default=False
            )
            tokens = [t for t in re.split(r"[,\s]+", answer) if t]
            chosen = {self._lookup(options, t) for t in tokens}
            if None in chosen:
                invalid = [t for t in tokens if self._lookup(options, t) is None]
                click.echo(f"Invalid choice(s): {', '.join(invalid)}.", err=True)
                continue
            if limit is not None and len(chosen) > limit:
                click.echo(f"At most {limit} choice(s) allowed.", err=True)
                continue
            return [option for option in options if option in chosen]

    def confirm(self, question: str, default: bool = False) -> bool:
        return click.confirm(question, default=default)


def parse_date(value: str) -> date:
    """Parse a snapshot directory name, which must be exactly YYYY-MM-DD."""
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        parsed = None
    if parsed is None or parsed.isoformat() != value:
        raise SelectionException(f"'{value}' is not a valid date (expected YYYY-MM-DD).")
    return parsed


def select_start_date(
    prompter: Prompter, dates: Sequence[str], since: Optional[str] = None
) -> date:
    if since is None:
        since = prompter.pick_one(dates, "How far back should new packages be collected?")
    elif since not in dates:
        raise SelectionException(f"There is no snapshot for {since}.")
    start = parse_date(since)
    logger.info(f"Collecting packages added since {start.isoformat()}")
    return start


def resolve_selection(
    choices: Sequence[str], candidates: Sequence[str]
) -> Optional[List[str]]:
    """Apply the `all` and `none` sentinels to the chosen items.

    Returns None when `none` was chosen, every candidate when `all` was chosen,
    and otherwise the chosen candidates in candidate order.
    """
    if NONE in choices:
        return None
    if ALL in choices:
        return list(candidates)
    unknown = set(choices) - set(candidates)
    if len(unknown) > 0:
        raise SelectionException(
            f"Unknown repositories '{','.join(sorted(unknown))}'. Choose from {', '.join(candidates)}."
        )
    return [candidate for candidate in candidates if candidate in choices]


def select_repos(
    prompter: Prompter,
    candidates: Sequence[str],
    preselected: Optional[Sequence[str]] = None,
) -> Optional[List[str]]:
    if preselected:
        return resolve_selection(preselected, candidates)

    options = [ALL, NONE, *candidates]
    while True:
        choices = prompter.pick_many(options, "Select the repositories to archive:")
        confirmed = resolve_selection(choices, candidates)
        if confirmed is None or len(confirmed) > 0:
            return confirmed
        logger.warning("No repositories selected, please select at least one (or 'none').")
