"""
Tests for the engine check command.
"""

from check_engine import list_capabilities, main
from conftest import FakeEngine

WRAPPER_SOURCE = '''
class _Module:
    def detect_language(self, text):
        return "unknown"

    def version(self):
        return "3.0"


def create_module(wasm_binary=None):
    return _Module()
'''


class TestCheckEngine:
    """Tests for check_engine.main."""

    def test_unavailable_engine_exits_nonzero(self, tmp_path):
        """Test the check fails without an artifact."""
        assert main(["--asset-dir", str(tmp_path)]) == 1

    def test_loaded_engine_runs_sample(self, tmp_path, caplog):
        """Test the check lists capabilities and classifies the sample."""
        (tmp_path / "cld3_wasm.wasm").write_bytes(b"not used by the wrapper")
        (tmp_path / "cld3_wasm.py").write_text(WRAPPER_SOURCE)
        with caplog.at_level("INFO", logger="check_engine"):
            assert main(["--asset-dir", str(tmp_path), "--text", "Hallo Welt"]) == 0
        messages = [r.getMessage() for r in caplog.records]
        assert "  - detect_language (function)" in messages
        assert "  Language: UNKNOWN" in messages

    def test_failing_sample_exits_nonzero(self, tmp_path):
        """Test the check fails when the sample classification raises."""
        (tmp_path / "cld3_wasm.wasm").write_bytes(b"x")
        (tmp_path / "cld3_wasm.py").write_text(
            "class M:\n    def detect_language(self, text):\n        raise ValueError('bad input')\n\n"
            "def create_module(wasm_binary=None):\n    return M()\n"
        )
        assert main(["--asset-dir", str(tmp_path)]) == 1


class TestListCapabilities:
    """Tests for list_capabilities."""

    def test_public_callables(self):
        """Test public callables are listed for wrapper engines."""
        assert list_capabilities(FakeEngine()) == ["detect_language"]

    def test_exported_functions_preferred(self):
        """Test exported function names win over attributes."""
        class Exports:
            exported_functions = ["malloc", "detect_language"]

            def detect_language(self, text):
                return "en"

        assert list_capabilities(Exports()) == ["malloc", "detect_language"]
