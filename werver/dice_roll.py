"""Dice roll expressions such as ``2d6`` or ``4d6kh3``."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from enum import Enum

_COUNT = re.compile(r"\+?[0-9]+")


class DiceType(Enum):
    D4 = 4
    D6 = 6
    D8 = 8
    D10 = 10
    D12 = 12
    D20 = 20
    D100 = 100

    def __str__(self) -> str:
        return f"d{self.value}"


_BY_SIDES = {str(dice.value): dice for dice in DiceType}


class KeepMode(Enum):
    """Which rolls count towards the total."""

    NONE = "none"
    HIGHEST = "highest"
    LOWEST = "lowest"


class ParseDiceRollError(ValueError):
    """Raised when a dice expression cannot be parsed."""


def _parse_count(text: str) -> int:
    if not text:
        raise ParseDiceRollError("cannot parse integer from empty string")
    if not _COUNT.fullmatch(text):
        raise ParseDiceRollError("invalid digit found in string")
    return int(text)


@dataclass(frozen=True)
class DiceRoll:
    """A number of dice of one type, optionally keeping only the highest or lowest."""

    dice_type: DiceType
    dice_count: int
    keep_mode: KeepMode = KeepMode.NONE
    keep_count: int = 0

    @classmethod
    def parse(cls, text: str) -> DiceRoll:
        """Parse ``[count]d<sides>[kh<n>|kl<n>]``."""
        rest, sep, processing = text.partition("k")
        keep_mode, keep_count = KeepMode.NONE, 0
        if sep:
            if not processing:
                raise ParseDiceRollError(f"Invalid dice string: {text}")
            low_or_high, count_text = processing[:1], processing[1:]
            keep_count = _parse_count(count_text)
            if low_or_high == "l":
                keep_mode = KeepMode.LOWEST
            elif low_or_high == "h":
                keep_mode = KeepMode.HIGHEST
            else:
                raise ParseDiceRollError(f"Invalid dice string: {text}")
        count_text, sep, sides_text = rest.partition("d")
        if not sep:
            raise ParseDiceRollError(f"Invalid dice string: {text}")
        dice_count = _parse_count(count_text) if count_text else 1
        dice_type = _BY_SIDES.get(sides_text.lower())
        if dice_type is None:
            raise ParseDiceRollError(f"Unknown dice type: {sides_text}")
        return cls(dice_type, dice_count, keep_mode, keep_count)

    def roll(self, rng: random.Random | None = None) -> int:
        """Roll the dice and return the total of the rolls that are kept."""
        rng = rng if rng is not None else random.Random()
        rolls = sorted(rng.randint(1, self.dice_type.value) for _ in range(self.dice_count))
        if self.keep_mode is KeepMode.HIGHEST:
            rolls = rolls[::-1][: self.keep_count]
        elif self.keep_mode is KeepMode.LOWEST:
            rolls = rolls[: self.keep_count]
        return sum(rolls)

    def to_english(self) -> str:
        if self.keep_mode is KeepMode.HIGHEST:
            return f"{self.dice_count} {self.dice_type}, keeping highest {self.keep_count} rolls"
        if self.keep_mode is KeepMode.LOWEST:
            return f"{self.dice_count} {self.dice_type}, keeping lowest {self.keep_count} rolls"
        return f"{self.dice_count} {self.dice_type}"