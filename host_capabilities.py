"""Host capability set for directly instantiated classification artifacts.

The CLD3 artifact is an Emscripten build that expects its host to provide a
fixed set of imports: linear memory, a handful of globals, and a long list of
(mostly minified) runtime functions. When the bootstrapping wrapper cannot be
used, the loader instantiates the binary itself and satisfies every declared
import from this set:

- Memory: a fresh linear memory honoring the declared limits
- Globals: zero-valued, matching the declared type and mutability
- Tables: empty, matching the declared size
- Functions: a named capability when one is registered, otherwise a stub
  returning the zero value of each declared result
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import wasmtime

import config

logger = logging.getLogger(__name__)

# Largest heap the artifact may grow to (emscripten_get_heap_max)
HEAP_LIMIT_BYTES = 2147483648


@dataclass(frozen=True)
class HostFunction:
    """A named host function with its documented semantics."""

    description: str
    impl: Callable[..., Any]


def _clock_ms(*_args: Any) -> float:
    return time.time() * 1000.0


def _heap_limit(*_args: Any) -> int:
    return HEAP_LIMIT_BYTES


def _resize_ok(*_args: Any) -> int:
    return 1


# Import names used by the minified CLD3 build; anything not listed is stubbed.
DEFAULT_FUNCTIONS: dict[str, HostFunction] = {
    "c": HostFunction("clock: wall-clock time in milliseconds", _clock_ms),
    "m": HostFunction("heap limit: largest heap size the host allows", _heap_limit),
    "n": HostFunction("heap resize: always reports success", _resize_ok),
}


def _wrap_i32(value: int) -> int:
    """Reinterpret an unsigned value as a signed 32-bit integer."""
    return ((int(value) + 2**31) % 2**32) - 2**31


def _wrap_i64(value: int) -> int:
    return ((int(value) + 2**63) % 2**64) - 2**63


def to_val(valtype: wasmtime.ValType, value: Any) -> wasmtime.Val:
    """Coerce a Python value into a wasm value of the given type.

    Args:
        valtype: Declared wasm value type
        value: Python value (None means the zero value)

    Returns:
        Typed wasm value
    """
    if valtype == wasmtime.ValType.i32():
        return wasmtime.Val.i32(_wrap_i32(value or 0))
    if valtype == wasmtime.ValType.i64():
        return wasmtime.Val.i64(_wrap_i64(value or 0))
    if valtype == wasmtime.ValType.f32():
        return wasmtime.Val.f32(float(value or 0.0))
    if valtype == wasmtime.ValType.f64():
        return wasmtime.Val.f64(float(value or 0.0))
    if valtype == wasmtime.ValType.externref():
        return wasmtime.Val.externref(value)
    return wasmtime.Val.funcref(None)


@dataclass
class HostCapabilitySet:
    """Imports a sandboxed artifact can draw on at instantiation time.

    Attributes:
        initial_pages: Minimum linear memory size handed out, in 64 KiB pages
        maximum_pages: Memory ceiling used when the artifact leaves it open
        functions: Named host functions, keyed by import name
    """

    initial_pages: int = config.MEMORY_INITIAL_PAGES
    maximum_pages: int = config.MEMORY_MAXIMUM_PAGES
    functions: dict[str, HostFunction] = field(default_factory=lambda: dict(DEFAULT_FUNCTIONS))
    memory: wasmtime.Memory | None = field(default=None, init=False)

    def provide(self, store: wasmtime.Store, module: wasmtime.Module) -> list[Any]:
        """Build one extern per declared import, in declaration order.

        Args:
            store: Store the externs are created in
            module: Compiled artifact whose imports must be satisfied

        Returns:
            Externs suitable for wasmtime.Instance

        Raises:
            TypeError: If the artifact declares an import kind the host cannot supply
        """
        self.memory = None
        externs: list[Any] = []
        stubbed = 0
        for imp in module.imports:
            ty = imp.type
            if isinstance(ty, wasmtime.FuncType):
                host_fn = self.functions.get(imp.name or "")
                if host_fn is None:
                    stubbed += 1
                externs.append(self._function(store, ty, host_fn))
            elif isinstance(ty, wasmtime.MemoryType):
                externs.append(self._memory(store, ty))
            elif isinstance(ty, wasmtime.GlobalType):
                externs.append(wasmtime.Global(store, ty, to_val(ty.content, None)))
            elif isinstance(ty, wasmtime.TableType):
                externs.append(wasmtime.Table(store, ty, None))
            else:
                raise TypeError(f"Unsupported import kind for {imp.module}.{imp.name}")

        logger.debug(f"Provided {len(externs)} host imports ({stubbed} stubbed functions)")
        return externs

    def _function(self, store: wasmtime.Store, ty: wasmtime.FuncType, host_fn: HostFunction | None) -> wasmtime.Func:
        results = ty.results
        impl = host_fn.impl if host_fn is not None else None

        def call(*args: Any) -> Any:
            value = impl(*args) if impl is not None else None
            if not results:
                return None
            if len(results) == 1:
                return to_val(results[0], value)
            values = value if value is not None else (None,) * len(results)
            return tuple(to_val(vt, v) for vt, v in zip(results, values))

        return wasmtime.Func(store, ty, call)

    def _memory(self, store: wasmtime.Store, ty: wasmtime.MemoryType) -> wasmtime.Memory:
        declared = ty.limits
        minimum = max(declared.min, self.initial_pages)
        maximum = declared.max if declared.max is not None else self.maximum_pages
        if minimum > maximum:
            minimum = max(declared.min, min(self.initial_pages, maximum))
        maximum = max(maximum, minimum)

        memory = wasmtime.Memory(store, wasmtime.MemoryType(wasmtime.Limits(minimum, maximum)))
        self.memory = memory
        return memory
