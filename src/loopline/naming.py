from __future__ import annotations

import re
from typing import Any, Dict, Generic, Iterator, List, Optional, TypeVar

T = TypeVar("T")

_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z]|\d|\b|_)|[A-Z]?[a-z]+|[A-Z]+|\d+")


def split_words(value: str) -> List[str]:
    """
    Split an identifier on separators (`-`, `_`, `.`, whitespace) and case boundaries.

        split_words("customer-receipt") == ["customer", "receipt"]
        split_words("CustomerReceipt")  == ["Customer", "Receipt"]
        split_words("HTTPServer")       == ["HTTP", "Server"]
    """
    words: List[str] = []
    for chunk in re.split(r"[\s\-_.]+", value or ""):
        if chunk:
            words.extend(_WORD_RE.findall(chunk))
    return words


def pascal_case(value: str) -> str:
    return "".join(w[:1].upper() + w[1:] for w in split_words(value))


def camel_case(value: str) -> str:
    words = split_words(value)
    if not words:
        return ""
    head = words[0]
    head = head.lower() if head.isupper() else head[:1].lower() + head[1:]
    return head + "".join(w[:1].upper() + w[1:] for w in words[1:])


class AliasMap(Generic[T]):
    """
    Canonical name -> value storage with a separate alias table.

    `register("customer-receipt", v)` stores `v` once under its exact name and
    records "CustomerReceipt" and "customerReceipt" as aliases of that name.
    Exact canonical names always win over aliases.
    """

    def __init__(self) -> None:
        self._values: Dict[str, T] = {}
        self._aliases: Dict[str, str] = {}

    def register(self, name: str, value: T) -> T:
        self._values[name] = value
        for alias in (pascal_case(name), camel_case(name)):
            if alias and alias != name:
                self._aliases[alias] = name
        return value

    def canonical(self, name: str) -> Optional[str]:
        if name in self._values:
            return name
        key = self._aliases.get(name)
        if key is not None and key in self._values:
            return key
        return None

    def get(self, name: str, default: Any = None) -> Any:
        key = self.canonical(name)
        return self._values[key] if key is not None else default

    def __getitem__(self, name: str) -> T:
        key = self.canonical(name)
        if key is None:
            raise KeyError(name)
        return self._values[key]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.canonical(name) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def names(self) -> List[str]:
        return list(self._values)

    def values(self) -> List[T]:
        return list(self._values.values())
