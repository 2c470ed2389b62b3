from __future__ import annotations

import typing
from collections.abc import Iterator, Mapping, MutableMapping

HeaderTypes = typing.Union[
    "Headers",
    Mapping[str, str],
    typing.Sequence[typing.Tuple[str, str]],
]


def _normalize_header_value(value: typing.Any) -> str:
    if isinstance(value, bytes):
        return value.decode("latin-1")
    if not isinstance(value, str):
        raise TypeError(f"Header value must be str or bytes, not {type(value)}")
    return value


def _normalize_header_name(name: typing.Any) -> str:
    if isinstance(name, bytes):
        name = name.decode("ascii")
    if not isinstance(name, str):
        raise TypeError(f"Header name must be str or bytes, not {type(name)}")
    if not name or any(c in name for c in " \t\r\n:"):
        raise ValueError(f"Invalid header name {name!r}")
    return name


def _encode(value: str) -> bytes:
    try:
        return value.encode("ascii")
    except UnicodeEncodeError:
        return value.encode("utf-8")


class Headers(MutableMapping[str, str]):
    """
    Case-insensitive HTTP headers that may repeat a name.
    """

    def __init__(self, headers: HeaderTypes | None = None) -> None:
        # (lower-cased name, name as given, value)
        self._list: list[tuple[str, str, str]] = []
        if isinstance(headers, Headers):
            self._list = list(headers._list)
        elif isinstance(headers, Mapping):
            for name, value in headers.items():
                self.add(name, value)
        elif headers is not None:
            for name, value in headers:
                self.add(name, value)

    def add(self, name: str, value: str) -> None:
        """
        Append a value, keeping any existing values for the same name.
        """
        name = _normalize_header_name(name)
        self._list.append((name.lower(), name, _normalize_header_value(value)))

    def get_list(self, name: str) -> list[str]:
        lower = name.lower()
        return [value for key, _, value in self._list if key == lower]

    def multi_items(self) -> list[tuple[str, str]]:
        return [(name, value) for _, name, value in self._list]

    @property
    def raw(self) -> list[tuple[bytes, bytes]]:
        return [(_encode(name), _encode(value)) for _, name, value in self._list]

    def copy(self) -> Headers:
        return Headers(self)

    def __getitem__(self, name: str) -> str:
        values = self.get_list(name)
        if not values:
            raise KeyError(name)
        return ", ".join(values)

    def __setitem__(self, name: str, value: str) -> None:
        name = _normalize_header_name(name)
        lower = name.lower()
        self._list = [item for item in self._list if item[0] != lower]
        self._list.append((lower, name, _normalize_header_value(value)))

    def __delitem__(self, name: str) -> None:
        lower = name.lower()
        remaining = [item for item in self._list if item[0] != lower]
        if len(remaining) == len(self._list):
            raise KeyError(name)
        self._list = remaining

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        lower = name.lower()
        return any(key == lower for key, _, _ in self._list)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for key, name, _ in self._list:
            if key not in seen:
                seen.add(key)
                yield name

    def __len__(self) -> int:
        return len({key for key, _, _ in self._list})

    def __eq__(self, other: object) -> bool:
        try:
            other_headers = Headers(other)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return False
        return sorted((k, v) for k, _, v in self._list) == sorted(
            (k, v) for k, _, v in other_headers._list
        )

    def __repr__(self) -> str:
        as_dict = dict(self.multi_items())
        if len(as_dict) == len(self._list):
            return f"{self.__class__.__name__}({as_dict!r})"
        return f"{self.__class__.__name__}({self.multi_items()!r})"
