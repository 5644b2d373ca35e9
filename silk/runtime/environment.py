"""
Silk Runtime Environment

The environment is a stack of scope frames. Lookup only ever consults the
innermost frame: a function call pushes a fresh frame seeded with its bound
parameters and nothing else, and pops it on exit.

Key classes:
- Frame: One scope's name-to-value mapping
- FramePool: Free list of retired frames, cleared before reuse
- Environment: Frame stack owned by a single call chain
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set

from silk.errors import UndefinedVariableError

DEFAULT_POOL_SIZE = 64


@dataclass
class Frame:
    """
    A single scope of variable bindings.

    When ``written`` is a set, every name bound through ``set`` is recorded
    in it.
    """
    variables: Dict[str, Any] = field(default_factory=dict)
    reusable: bool = True
    written: Optional[Set[str]] = None

    def __contains__(self, name: str) -> bool:
        return name in self.variables

    def __len__(self) -> int:
        return len(self.variables)

    def get(self, name: str) -> Any:
        try:
            return self.variables[name]
        except KeyError:
            raise UndefinedVariableError(name) from None

    def set(self, name: str, value: Any) -> None:
        self.variables[name] = value
        if self.written is not None:
            self.written.add(name)

    def clear(self) -> None:
        self.variables.clear()
        if self.written is not None:
            self.written.clear()

    def writes(self) -> Dict[str, Any]:
        """Bindings recorded in ``written``, with their current values."""
        return {name: self.variables[name] for name in self.written or ()}

    def snapshot(self) -> Dict[str, Any]:
        return dict(self.variables)


class FramePool:
    """
    Pool of retired call frames.

    Frames are cleared when they are released, so every frame handed out by
    ``acquire`` is empty. The pool keeps at most ``max_size`` frames.
    """

    def __init__(self, max_size: int = DEFAULT_POOL_SIZE):
        if max_size < 0:
            raise ValueError("max_size must be >= 0")
        self.max_size = max_size
        self._free: List[Frame] = []

    def __len__(self) -> int:
        return len(self._free)

    def acquire(self) -> Frame:
        if self._free:
            return self._free.pop()
        return Frame(reusable=True)

    def release(self, frame: Frame) -> None:
        if not frame.reusable:
            return
        frame.clear()
        if len(self._free) < self.max_size:
            self._free.append(frame)


class Environment:
    """
    Frame stack for one call chain.

    The base frame holds top-level bindings and is never popped or pooled.
    An Environment is not thread-safe; concurrent work uses ``fork`` to get
    an isolated copy.
    """

    def __init__(self,
                 bindings: Optional[Mapping[str, Any]] = None,
                 pool: Optional[FramePool] = None):
        self.pool = pool
        self._stack: List[Frame] = [Frame(dict(bindings or {}), reusable=False)]

    @property
    def current(self) -> Frame:
        return self._stack[-1]

    @property
    def base(self) -> Frame:
        return self._stack[0]

    @property
    def depth(self) -> int:
        return len(self._stack)

    def push(self, bindings: Optional[Mapping[str, Any]] = None) -> Frame:
        """Push a call frame, recycling a pooled one when available."""
        frame = self.pool.acquire() if self.pool is not None else Frame()
        if bindings:
            frame.variables.update(bindings)
        self._stack.append(frame)
        return frame

    def pop(self) -> Frame:
        """Pop the innermost call frame and hand it back to the pool."""
        if len(self._stack) == 1:
            raise RuntimeError("cannot pop the base frame")
        frame = self._stack.pop()
        if self.pool is not None:
            self.pool.release(frame)
        return frame

    def unwind(self, depth: int = 1) -> None:
        """Pop call frames until at most ``depth`` remain."""
        while len(self._stack) > max(depth, 1):
            self.pop()

    @contextmanager
    def frame(self, bindings: Optional[Mapping[str, Any]] = None) -> Iterator[Frame]:
        """Push a frame for the duration of the block, popping it on any exit."""
        frame = self.push(bindings)
        try:
            yield frame
        finally:
            self.pop()

    def get(self, name: str) -> Any:
        return self.current.get(name)

    def set(self, name: str, value: Any) -> None:
        self.current.set(name, value)

    def has(self, name: str) -> bool:
        return name in self.current

    def snapshot(self) -> Dict[str, Any]:
        """Copy of the innermost frame's bindings."""
        return self.current.snapshot()

    def fork(self) -> Environment:
        """
        New environment whose base frame is a copy of the current frame.

        The copy records the names it binds, so the writes can be merged
        back explicitly.
        """
        pool = FramePool(self.pool.max_size) if self.pool is not None else None
        forked = Environment(self.current.variables, pool=pool)
        forked.base.written = set()
        return forked
