"""
Check that the CLD3 engine can be loaded outside the server.

Loads the engine from an asset directory with the same fallback sequence the
service uses, lists the callable capabilities it exposes and runs a sample
detection.

Usage:
    python check_engine.py --asset-dir /srv/cld3 --text "Bonjour tout le monde"
"""

import argparse
import logging
import sys
from pathlib import Path

import config
from detection import EngineInvocationError, classify
from engine_loader import ClassificationEngine, EngineLoader, EngineRuntime, EngineState

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def list_capabilities(engine: ClassificationEngine) -> list[str]:
    """Names of the callables an engine exposes."""
    exported = getattr(engine, "exported_functions", None)
    if exported is not None:
        return list(exported)
    return sorted(name for name in dir(engine) if not name.startswith("_") and callable(getattr(engine, name)))


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Load the CLD3 engine and run a sample detection")
    parser.add_argument(
        "--asset-dir",
        type=Path,
        default=config.ASSET_DIR,
        help=f"Directory holding {config.WASM_FILENAME} and its wrapper (default: {config.ASSET_DIR})",
    )
    parser.add_argument("--text", default="Hello world", help="Sample text to detect (default: 'Hello world')")
    args = parser.parse_args(argv)

    runtime = EngineRuntime(EngineLoader(args.asset_dir))
    state = runtime.load()
    if state is not EngineState.LOADED or runtime.engine is None:
        logger.error(f"✗ Engine unavailable in {args.asset_dir}")
        return 1

    logger.info("✓ Module loaded successfully")
    logger.info("Available methods:")
    for name in list_capabilities(runtime.engine):
        logger.info(f"  - {name} (function)")

    try:
        language = classify(args.text, runtime)
    except EngineInvocationError as e:
        logger.error(f"✗ Detection failed: {e}")
        return 1

    logger.info("Detection test:")
    logger.info(f'  Text: "{args.text}"')
    logger.info(f"  Language: {language}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
