"""Lox environments: runtime scope frames linked to their enclosing frame."""

from __future__ import annotations

from .errors import UndefinedVariable
from .tokens import Token


class Environment:
    """One scope frame.

    Closures keep a reference to the frame they were defined in, so a frame
    lives as long as any function value that captured it.
    """

    def __init__(self, enclosing: Environment | None = None) -> None:
        self.values: dict[str, object] = {}
        self.enclosing: Environment | None = enclosing

    def define(self, name: str, value: object) -> None:
        """Bind in this frame, overwriting any existing binding."""
        self.values[name] = value

    def get(self, name: Token) -> object:
        env: Environment | None = self
        while env is not None:
            if name.value in env.values:
                return env.values[name.value]
            env = env.enclosing
        raise UndefinedVariable(name.value, name)

    def assign(self, name: Token, value: object) -> None:
        env: Environment | None = self
        while env is not None:
            if name.value in env.values:
                env.values[name.value] = value
                return
            env = env.enclosing
        raise UndefinedVariable(name.value, name)

    def ancestor(self, distance: int) -> Environment:
        env = self
        for _ in range(distance):
            if env.enclosing is None:
                raise RuntimeError("scope chain shorter than resolved distance")
            env = env.enclosing
        return env

    def get_at(self, distance: int, name: Token) -> object:
        values = self.ancestor(distance).values
        if name.value not in values:
            raise UndefinedVariable(name.value, name)
        return values[name.value]

    def assign_at(self, distance: int, name: Token, value: object) -> None:
        self.ancestor(distance).values[name.value] = value
