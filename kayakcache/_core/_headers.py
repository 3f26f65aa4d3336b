from __future__ import annotations

from typing import (
    Any,
    Iterator,
    List,
    Mapping,
    MutableMapping,
    Optional,
    Tuple,
    Union,
)


class Headers(MutableMapping[str, str]):
    """
    Case-insensitive, multi-valued header collection.

    Item assignment replaces every value stored under a name, while `append`
    adds a value next to the existing ones. Reading a name joins its values
    with ", ", the same way the Fetch `Headers.get` does.
    """

    def __init__(self, headers: Optional[Mapping[str, Union[str, List[str]]]] = None) -> None:
        self._headers = {k.lower(): ([v] if isinstance(v, str) else v[:]) for k, v in (headers or {}).items()}

    def get_list(self, key: str) -> Optional[List[str]]:
        return self._headers.get(key.lower(), None)

    def append(self, key: str, value: str) -> None:
        self._headers.setdefault(key.lower(), []).append(value)

    def multi_items(self) -> Iterator[Tuple[str, str]]:
        for key, values in self._headers.items():
            for value in values:
                yield key, value

    def copy(self) -> "Headers":
        return Headers(self._headers)

    def __getitem__(self, key: str) -> str:
        return ", ".join(self._headers[key.lower()])

    def __setitem__(self, key: str, value: str) -> None:
        self._headers[key.lower()] = [value]

    def __delitem__(self, key: str) -> None:
        del self._headers[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._headers

    def __iter__(self) -> Iterator[str]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return repr(self._headers)

    def __str__(self) -> str:
        return str(self._headers)

    def __eq__(self, other_headers: Any) -> bool:
        return isinstance(other_headers, Headers) and self._headers == other_headers._headers
