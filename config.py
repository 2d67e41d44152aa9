"""Configuration for the CLD3 language detection service."""

import os
from pathlib import Path

# Service configuration
HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "3000"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
PUBLIC_URL: str = os.getenv("PUBLIC_URL", f"http://localhost:{PORT}")

# Engine artifacts live next to the service by default
ASSET_DIR: Path = Path(os.getenv("ASSET_DIR", str(Path(__file__).resolve().parent)))
WASM_FILENAME: str = os.getenv("ENGINE_WASM_FILE", "cld3_wasm.wasm")
WRAPPER_FILENAME: str = os.getenv("ENGINE_WRAPPER_FILE", "cld3_wasm.py")
WRAPPER_FACTORY: str = os.getenv("ENGINE_WRAPPER_FACTORY", "create_module")
BROWSER_BINDINGS_FILENAME: str = os.getenv("BROWSER_BINDINGS_FILE", "cld3_wasm.js")
INDEX_FILENAME: str = os.getenv("INDEX_FILE", "index.html")

# Exports looked up on a directly instantiated artifact
MEMORY_EXPORT: str = os.getenv("ENGINE_MEMORY_EXPORT", "memory")
DETECT_EXPORT: str = os.getenv("ENGINE_DETECT_EXPORT", "detect_language")
MALLOC_EXPORT: str = os.getenv("ENGINE_MALLOC_EXPORT", "malloc")
FREE_EXPORT: str = os.getenv("ENGINE_FREE_EXPORT", "free")
INIT_EXPORT: str = os.getenv("ENGINE_INIT_EXPORT", "_initialize")

# Linear memory handed to the artifact (64 KiB pages)
MEMORY_INITIAL_PAGES: int = int(os.getenv("ENGINE_MEMORY_INITIAL_PAGES", "256"))
MEMORY_MAXIMUM_PAGES: int = int(os.getenv("ENGINE_MEMORY_MAXIMUM_PAGES", "512"))

# Echoed text previews
SINGLE_PREVIEW_LENGTH: int = 100
BATCH_PREVIEW_LENGTH: int = 50
