"""CLD3 engine acquisition and process-scoped engine state.

The classification engine is a sandboxed WebAssembly artifact. Acquiring it
follows an ordered fallback, stopping at the first success:

1. No artifact on disk -> Unavailable (expected, browser-only mode)
2. Bootstrapping wrapper module fed the pre-read binary -> Loaded
3. Direct wasmtime instantiation against the host capability set -> Loaded
4. Both strategies failed -> Unavailable

Loader failures are logged and never escape; the resulting state is written
once into an EngineRuntime before the service accepts traffic.
"""

import importlib.util
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import wasmtime

import config
from host_capabilities import HostCapabilitySet

logger = logging.getLogger(__name__)

# Upper bound on a label read back from linear memory
MAX_LABEL_BYTES = 256


class EngineState(str, Enum):
    """Engine lifecycle states."""

    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    UNAVAILABLE = "unavailable"


class ClassificationEngine(Protocol):
    """Text in, language label (or "unknown") out."""

    def detect_language(self, text: str) -> str: ...


class EngineNotReadyError(RuntimeError):
    """Raised when the engine is used before it reached a usable state."""


class WasmExportsEngine:
    """Classification engine backed by a directly instantiated wasm module.

    Text is copied into linear memory as a NUL-terminated UTF-8 string, the
    detection export is called with (pointer, length), and the returned
    pointer is read back as a NUL-terminated label. A wasmtime Store is not
    thread-safe, so calls are serialized.
    """

    def __init__(
        self,
        store: wasmtime.Store,
        memory: wasmtime.Memory,
        detect: wasmtime.Func,
        malloc: wasmtime.Func,
        free: wasmtime.Func,
        exported_functions: list[str],
    ) -> None:
        self._store = store
        self._memory = memory
        self._detect = detect
        self._malloc = malloc
        self._free = free
        self._lock = threading.Lock()
        self.exported_functions = exported_functions

    def detect_language(self, text: str) -> str:
        data = text.encode("utf-8")
        with self._lock:
            ptr = self._malloc(self._store, len(data) + 1)
            if not ptr:
                raise MemoryError("Engine allocator returned a null pointer")
            try:
                self._memory.write(self._store, data + b"\x00", ptr)
                label_ptr = self._detect(self._store, ptr, len(data))
                return self._read_label(label_ptr)
            finally:
                self._free(self._store, ptr)

    def _read_label(self, ptr: int) -> str:
        size = self._memory.data_len(self._store)
        if ptr < 0 or ptr >= size:
            raise ValueError(f"Label pointer {ptr} outside linear memory")
        end = min(ptr + MAX_LABEL_BYTES, size)
        raw = bytes(self._memory.read(self._store, ptr, end))
        label, terminator, _ = raw.partition(b"\x00")
        if not terminator:
            raise ValueError(f"Unterminated label at offset {ptr}")
        return label.decode("utf-8")


def _export(exports: Any, name: str) -> Any:
    try:
        return exports[name]
    except KeyError:
        return None


class EngineLoader:
    """Acquires a ClassificationEngine from the artifacts in an asset directory."""

    def __init__(
        self,
        asset_dir: Path,
        wasm_filename: str = config.WASM_FILENAME,
        wrapper_filename: str = config.WRAPPER_FILENAME,
        wrapper_factory: str = config.WRAPPER_FACTORY,
        host: HostCapabilitySet | None = None,
    ) -> None:
        self.asset_dir = Path(asset_dir)
        self.wasm_path = self.asset_dir / wasm_filename
        self.wrapper_path = self.asset_dir / wrapper_filename
        self.wrapper_factory = wrapper_factory
        self.host = host if host is not None else HostCapabilitySet()

    @classmethod
    def from_config(cls) -> "EngineLoader":
        """Build a loader for the configured asset directory."""
        return cls(config.ASSET_DIR)

    def acquire(self) -> ClassificationEngine | None:
        """Run the fallback sequence.

        Returns:
            Loaded engine, or None when the engine is unavailable on this host
        """
        try:
            if not self.wasm_path.exists():
                logger.warning(f"{self.wasm_path.name} not found in {self.asset_dir}")
                logger.warning("The application will work in browser-only mode")
                return None

            wasm_binary = self.wasm_path.read_bytes()

            try:
                engine = self.instantiate_with_wrapper(wasm_binary)
                logger.info("CLD3 WASM module loaded successfully on server")
                return engine
            except Exception as e:
                logger.warning("Could not load WASM via wrapper, trying direct instantiation")
                logger.warning(f"Error details: {e}")

            try:
                engine = self.instantiate_directly(wasm_binary)
                logger.info("CLD3 WASM module loaded with direct instantiation")
                return engine
            except Exception as e:
                logger.warning("Direct WASM instantiation also failed, browser-side mode only")
                logger.warning(f"Error details: {e}")
                return None

        except Exception as e:
            logger.warning(f"Could not load WASM module: {e}")
            logger.warning("The application will work in browser-only mode")
            return None

    def instantiate_with_wrapper(self, wasm_binary: bytes) -> ClassificationEngine:
        """Instantiate through the bootstrapping wrapper module.

        Args:
            wasm_binary: Pre-read artifact bytes handed to the wrapper factory

        Returns:
            Engine produced by the wrapper factory

        Raises:
            FileNotFoundError: If the wrapper module is missing
            ImportError: If the wrapper cannot be imported
            TypeError: If the factory or its product has the wrong shape
        """
        if not self.wrapper_path.exists():
            raise FileNotFoundError(f"Wrapper module not found at {self.wrapper_path}")

        spec = importlib.util.spec_from_file_location("cld3_wasm_wrapper", self.wrapper_path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot import wrapper module {self.wrapper_path}")
        wrapper = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(wrapper)

        factory = getattr(wrapper, self.wrapper_factory, None)
        if not callable(factory):
            raise TypeError(f"Wrapper has no callable {self.wrapper_factory}()")

        engine = factory(wasm_binary=wasm_binary)
        if not callable(getattr(engine, "detect_language", None)):
            raise TypeError("Wrapper module does not expose detect_language()")
        return engine

    def instantiate_directly(self, wasm_binary: bytes) -> WasmExportsEngine:
        """Instantiate the binary with wasmtime, stubbing host imports.

        Args:
            wasm_binary: Artifact bytes

        Returns:
            Engine bound to the instance's exports

        Raises:
            wasmtime.WasmtimeError: If compilation or linking fails
            AttributeError: If required exports are missing
        """
        engine = wasmtime.Engine()
        store = wasmtime.Store(engine)
        module = wasmtime.Module(engine, wasm_binary)
        instance = wasmtime.Instance(store, module, self.host.provide(store, module))
        exports = instance.exports(store)

        memory = _export(exports, config.MEMORY_EXPORT)
        if not isinstance(memory, wasmtime.Memory):
            memory = self.host.memory
        if memory is None:
            raise AttributeError("Artifact neither exports nor imports linear memory")

        funcs = {}
        for name in (config.DETECT_EXPORT, config.MALLOC_EXPORT, config.FREE_EXPORT):
            func = _export(exports, name)
            if not isinstance(func, wasmtime.Func):
                raise AttributeError(f"Artifact does not export {name}()")
            funcs[name] = func

        init = _export(exports, config.INIT_EXPORT)
        if isinstance(init, wasmtime.Func):
            init(store)

        exported_functions = sorted(exp.name for exp in module.exports if isinstance(exp.type, wasmtime.FuncType))
        return WasmExportsEngine(
            store=store,
            memory=memory,
            detect=funcs[config.DETECT_EXPORT],
            malloc=funcs[config.MALLOC_EXPORT],
            free=funcs[config.FREE_EXPORT],
            exported_functions=exported_functions,
        )


class EngineRuntime:
    """Process-scoped engine handle with a one-time initialization barrier.

    State moves from UNINITIALIZED to LOADED or UNAVAILABLE exactly once, in
    load(). Afterwards the handle is read-only.
    """

    def __init__(self, loader: EngineLoader) -> None:
        self._loader = loader
        self._engine: ClassificationEngine | None = None
        self._state = EngineState.UNINITIALIZED
        self._lock = threading.Lock()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._state is EngineState.LOADED

    @property
    def engine(self) -> ClassificationEngine | None:
        return self._engine

    def load(self) -> EngineState:
        """Acquire the engine once; later calls return the terminal state."""
        with self._lock:
            if self._state is not EngineState.UNINITIALIZED:
                return self._state

            engine = self._loader.acquire()
            if engine is None:
                self._state = EngineState.UNAVAILABLE
            else:
                self._engine = engine
                self._state = EngineState.LOADED

            logger.info(f"Engine state: {self._state.value}")
            return self._state

    def detect_language(self, text: str) -> str:
        """Forward text to the loaded engine.

        Raises:
            EngineNotReadyError: If the engine is not loaded
        """
        if self._engine is None:
            raise EngineNotReadyError(f"Engine is {self._state.value}")
        return self._engine.detect_language(text)
