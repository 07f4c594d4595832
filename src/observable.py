"""
Observable values for model elements.

A Property holds a single value and notifies its listeners whenever the value
changes. Views subscribe to biomolecule position, shape, and attachment state
through properties rather than polling the model.
"""

from typing import Any, Callable

import numpy as np


Listener = Callable[[Any, Any], None]


def _values_equal(a: Any, b: Any) -> bool:
    """Equality that also works for numpy vectors."""
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        if a is None or b is None:
            return False
        return bool(np.array_equal(a, b))
    return a == b


class Property:
    """
    Value holder with observer-style change notification.

    Listeners are called as ``listener(new_value, old_value)``.
    """

    def __init__(self, value: Any):
        self._value = value
        self._listeners: list[Listener] = []

    @property
    def value(self) -> Any:
        return self._value

    @value.setter
    def value(self, new_value: Any) -> None:
        self.set(new_value)

    def get(self) -> Any:
        return self._value

    def set(self, new_value: Any) -> None:
        """Set the value, notifying listeners only if it actually changed."""
        if _values_equal(new_value, self._value):
            return
        old_value = self._value
        self._value = new_value
        # Copy so listeners may unlink themselves during notification
        for listener in list(self._listeners):
            listener(new_value, old_value)

    def link(self, listener: Listener) -> None:
        """Subscribe and immediately call the listener with the current value."""
        self._listeners.append(listener)
        listener(self._value, None)

    def lazy_link(self, listener: Listener) -> None:
        """Subscribe without an initial call."""
        self._listeners.append(listener)

    def unlink(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def has_listener(self, listener: Listener) -> bool:
        return listener in self._listeners

    def __repr__(self) -> str:
        return f"Property({self._value!r})"
