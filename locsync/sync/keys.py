from __future__ import annotations


class Key:
    """Localization key compared case-insensitively.

    `text` keeps the original spelling for display and for the `Key` field
    written to the remote table; equality and hashing use the lower-cased form.
    """

    __slots__ = ("text", "folded")

    def __init__(self, text: str):
        self.text = text
        self.folded = text.lower()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        return self.folded == other.folded

    def __hash__(self) -> int:
        return hash(self.folded)

    def __repr__(self) -> str:
        return f"Key({self.text!r})"

    def __str__(self) -> str:
        return self.text
