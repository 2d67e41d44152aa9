"""
Unit tests for the host capability set.
"""

import time

import pytest
import wasmtime

from host_capabilities import DEFAULT_FUNCTIONS, HEAP_LIMIT_BYTES, HostCapabilitySet, HostFunction, to_val

IMPORTS_WAT = r"""
(module
  (import "a" "c" (func $clock (result f64)))
  (import "a" "m" (func $heap_max (result i32)))
  (import "a" "n" (func $resize (param i32) (result i32)))
  (import "a" "zz" (func $stub (param i32 i32) (result i64)))
  (import "a" "hook" (func $hook (param i32)))
  (import "env" "memory" (memory 1))
  (import "a" "__memory_base" (global $base i32))
  (import "a" "__stack_pointer" (global $sp (mut i32)))
  (import "a" "table" (table 4 funcref))
  (func (export "clock") (result f64) (call $clock))
  (func (export "heap_max") (result i32) (call $heap_max))
  (func (export "resize") (result i32) (call $resize (i32.const 1024)))
  (func (export "stub") (result i64) (call $stub (i32.const 1) (i32.const 2)))
  (func (export "hook") (call $hook (i32.const 7)))
  (func (export "base") (result i32) (global.get $base))
)
"""


def instantiate(wat, host=None):
    """Instantiate WAT text against a host capability set."""
    host = host if host is not None else HostCapabilitySet()
    engine = wasmtime.Engine()
    store = wasmtime.Store(engine)
    module = wasmtime.Module(engine, wasmtime.wat2wasm(wat))
    instance = wasmtime.Instance(store, module, host.provide(store, module))
    return store, instance.exports(store), host


class TestNamedFunctions:
    """Tests for the named host functions."""

    def test_clock_returns_milliseconds(self):
        """Test the clock returns wall time in milliseconds."""
        store, exports, _ = instantiate(IMPORTS_WAT)
        before = time.time() * 1000.0
        value = exports["clock"](store)
        after = time.time() * 1000.0
        assert before <= value <= after

    def test_heap_limit(self):
        """Test the heap limit function."""
        store, exports, _ = instantiate(IMPORTS_WAT)
        # i32 results come back signed
        assert exports["heap_max"](store) & 0xFFFFFFFF == HEAP_LIMIT_BYTES

    def test_resize_reports_success(self):
        """Test the resize function reports success."""
        store, exports, _ = instantiate(IMPORTS_WAT)
        assert exports["resize"](store) == 1

    def test_default_set_is_documented(self):
        """Test every default function carries a description."""
        assert set(DEFAULT_FUNCTIONS) == {"c", "m", "n"}
        assert all(fn.description for fn in DEFAULT_FUNCTIONS.values())

    def test_override_function(self):
        """Test a named function can be replaced."""
        host = HostCapabilitySet(functions={"m": HostFunction("fixed heap", lambda: 4096)})
        store, exports, _ = instantiate(IMPORTS_WAT, host)
        assert exports["heap_max"](store) == 4096


class TestStubs:
    """Tests for unnamed imports."""

    def test_unknown_function_returns_zero(self):
        """Test unnamed imports return zero."""
        store, exports, _ = instantiate(IMPORTS_WAT)
        assert exports["stub"](store) == 0

    def test_no_result_function_is_noop(self):
        """Test unnamed imports without results do nothing."""
        store, exports, _ = instantiate(IMPORTS_WAT)
        assert exports["hook"](store) is None

    def test_globals_are_zero(self):
        """Test imported globals start at zero."""
        store, exports, _ = instantiate(IMPORTS_WAT)
        assert exports["base"](store) == 0


class TestMemory:
    """Tests for provided linear memory."""

    def test_initial_pages(self):
        """Test memory starts at the configured page count."""
        store, _, host = instantiate(IMPORTS_WAT)
        assert host.memory is not None
        assert host.memory.size(store) == 256

    def test_declared_minimum_wins(self):
        """Test a larger declared minimum is honored."""
        wat = '(module (import "env" "memory" (memory 300)))'
        store, _, host = instantiate(wat)
        assert host.memory.size(store) == 300

    def test_declared_maximum_respected(self):
        """Test a smaller declared maximum caps the size."""
        wat = '(module (import "env" "memory" (memory 1 64)))'
        store, _, host = instantiate(wat)
        assert host.memory.size(store) == 64

    def test_no_memory_import(self):
        """Test no memory is created when none is imported."""
        _, _, host = instantiate("(module)")
        assert host.memory is None

    def test_memory_reset_on_reuse(self):
        """Test memory from an earlier instantiation is not kept."""
        host = HostCapabilitySet()
        instantiate(IMPORTS_WAT, host)
        assert host.memory is not None
        instantiate("(module)", host)
        assert host.memory is None


class TestToVal:
    """Tests for to_val coercion."""

    def test_i32_wraps_unsigned(self):
        """Test unsigned values wrap to signed i32."""
        assert to_val(wasmtime.ValType.i32(), 2**31).value == -(2**31)

    def test_none_is_zero(self):
        """Test None becomes the zero value."""
        assert to_val(wasmtime.ValType.i64(), None).value == 0
        assert to_val(wasmtime.ValType.f64(), None).value == pytest.approx(0.0)

    def test_float(self):
        """Test float coercion."""
        assert to_val(wasmtime.ValType.f32(), 1.5).value == pytest.approx(1.5)


class TestMultiResult:
    """Tests for host functions declaring several results."""

    PAIR_WAT = r"""
    (module
      (import "a" "pair" (func $pair (result i32 f64)))
      (func (export "pair") (result i32 f64) (call $pair))
    )
    """

    def test_results_converted_element_wise(self):
        """Test each returned value is coerced to its declared result type."""
        host = HostCapabilitySet(functions={"pair": HostFunction("pair", lambda: (2**31, 2.5))})
        store, exports, _ = instantiate(self.PAIR_WAT, host)
        first, second = exports["pair"](store)
        assert first == -(2**31)
        assert second == pytest.approx(2.5)

    def test_stub_returns_zeros(self):
        """Test an unnamed multi-result import returns the zero value of each type."""
        store, exports, _ = instantiate(self.PAIR_WAT)
        assert list(exports["pair"](store)) == [0, 0.0]
