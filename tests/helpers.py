from typing import Any


class Recorder:
    """Collects the arguments of every call made to the handlers it builds."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def record(self, *args: Any) -> None:
        self.calls.append(args)
