from __future__ import annotations


class InvalidInput(ValueError):
    """Malformed numeric input (coordinates, score rows). Always a caller bug."""


class CityNotFound(LookupError):
    def __init__(self, side: str, city: str, state: str, reason: str = "not in directory"):
        self.side = side
        self.city = city
        self.state = state
        self.reason = reason
        super().__init__(f"{side} city '{city}, {state}' {reason}")
