"""Inbound SMS command decoding.

Every inbound body is decoded exactly once into one of the command types
below; handlers dispatch on the type instead of re-parsing text.
"""

from dataclasses import dataclass

from textquiz.models.question import ANSWER_LETTERS


@dataclass(frozen=True)
class Answer:
    letter: str


@dataclass(frozen=True)
class Help:
    pass


@dataclass(frozen=True)
class Score:
    pass


@dataclass(frozen=True)
class Stop:
    pass


@dataclass(frozen=True)
class Restart:
    pass


@dataclass(frozen=True)
class Unknown:
    text: str


Command = Answer | Help | Score | Stop | Restart | Unknown

# Carrier-standard opt-out/opt-in keywords map onto STOP/RESTART
_KEYWORDS: dict[str, Command] = {
    "HELP": Help(),
    "INFO": Help(),
    "SCORE": Score(),
    "STATS": Score(),
    "STOP": Stop(),
    "UNSUBSCRIBE": Stop(),
    "CANCEL": Stop(),
    "QUIT": Stop(),
    "END": Stop(),
    "RESTART": Restart(),
    "START": Restart(),
    "UNSTOP": Restart(),
}


def normalize_reply(raw: str | None) -> str:
    """Trim and uppercase an inbound body."""
    return (raw or "").strip().upper()


def parse_command(raw: str | None) -> Command:
    """
    Decode an inbound SMS body.

    A single letter A-D (optionally followed by ")" or ".") is an answer.
    Keywords are matched case-insensitively on the whole trimmed body.
    """
    text = normalize_reply(raw)

    candidate = text.rstrip(").")
    if candidate in ANSWER_LETTERS:
        return Answer(candidate)

    command = _KEYWORDS.get(text)
    if command is not None:
        return command
    return Unknown(raw or "")
