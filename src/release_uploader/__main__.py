"""
Entry point for uploading release assets.

Usage:
    # Upload one file
    python -m release_uploader --token $TOKEN --host example.io \\
        --release-id 42 --asset-key firmware --file-path build/firmware.bin

    # Upload every match of a glob; keys become <asset-key>-<slug of path>
    python -m release_uploader --release-id 42 --asset-key logs \\
        --file-path 'out/**/*.log'

    # Inside a GitHub Action: inputs come from INPUT_* variables and
    # outputs are appended to $GITHUB_OUTPUT
    python -m release_uploader
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from core.errors.exceptions import UploaderError
from core.logging.setup import get_logger, setup_logging
from core.logging.utilities import log_exception
from release_uploader.config import UploaderConfig
from release_uploader.files import file_exists
from release_uploader.schemas import IfFilePathNotFound, UploadInputs, UploadResult
from release_uploader.search import get_files_with_keys, is_glob_pattern
from release_uploader.transfer.coordinator import ReleaseAssetUploader

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Upload a file as a release asset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Replace an existing asset
    python -m release_uploader --release-id 42 --asset-key app \\
        --file-path dist/app.img --overwrite

    # Fail instead of warning when nothing matches
    python -m release_uploader --file-path 'dist/*.img' \\
        --if-file-path-not-found error

Every input not given on the command line is read from the matching
INPUT_* environment variable (e.g. --release-id from INPUT_RELEASE-ID).
        """,
    )

    parser.add_argument("--token", help="Bearer token (INPUT_TOKEN)")
    parser.add_argument("--host", help="Control-plane host, e.g. example.io (INPUT_HOST)")
    parser.add_argument("--release-id", type=int, help="Target release id")
    parser.add_argument("--asset-key", help="Release asset key (prefix for globs)")
    parser.add_argument("--file-path", help="File path, directory or glob pattern")
    parser.add_argument(
        "--overwrite",
        action="store_true",
        default=None,
        help="Replace an existing asset with the same key",
    )
    parser.add_argument(
        "--if-file-path-not-found",
        choices=[p.value for p in IfFilePathNotFound],
        help="What to do when nothing matches (default: warn)",
    )
    parser.add_argument("--chunk-size", type=int, help="Multipart chunk size in bytes")
    parser.add_argument(
        "--parallel-chunks", type=int, help="Maximum concurrent part uploads"
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML config file with an 'uploader:' section (default: ./config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Write JSON log files here (default: from LOG_DIR env var, else console only)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines on the console",
    )

    return parser.parse_args(argv)


def inputs_from_args(
    args: argparse.Namespace, environ: Optional[Dict[str, str]] = None
) -> UploadInputs:
    """Merge CLI flags over INPUT_* variables."""
    return UploadInputs.from_env(
        environ=environ,
        overrides={
            "auth_token": args.token,
            "api_host": args.host,
            "release_id": args.release_id,
            "asset_key": args.asset_key,
            "file_path": args.file_path,
            "overwrite": args.overwrite,
            "if_file_path_not_found": args.if_file_path_not_found,
            "chunk_size": args.chunk_size,
            "parallel_chunks": args.parallel_chunks,
        },
    )


def write_outputs(outputs: Dict[str, str], output_file: Optional[str] = None) -> None:
    """Log step outputs and append them to $GITHUB_OUTPUT when set."""
    output_file = output_file or os.getenv("GITHUB_OUTPUT")
    for name, value in outputs.items():
        logger.info(f"Output {name}={value}")
    if not output_file or not outputs:
        return
    with open(output_file, "a", encoding="utf-8") as f:
        for name, value in outputs.items():
            f.write(f"{name}={value}\n")


async def upload_one(inputs: UploadInputs, config: UploaderConfig) -> UploadResult:
    async with ReleaseAssetUploader(inputs, config=config) as uploader:
        return await uploader.upload_file()


async def run(inputs: UploadInputs, config: UploaderConfig) -> List[Dict[str, Any]]:
    """
    Upload every file the inputs resolve to.

    Returns:
        One {asset_key, file_path, release_asset_id, download_url} per upload
    """
    logger.info(f"Starting upload with {json.dumps(inputs.summary(), indent=2)}")

    if is_glob_pattern(inputs.file_path):
        targets = [
            inputs.model_copy(update={"file_path": f.file_path, "asset_key": f.asset_key})
            for f in get_files_with_keys(inputs.file_path, inputs.asset_key)
        ]
        if not targets:
            file_exists(inputs.file_path, inputs.if_file_path_not_found)
    elif file_exists(inputs.file_path, inputs.if_file_path_not_found):
        targets = [inputs]
    else:
        targets = []

    uploaded: List[Dict[str, Any]] = []
    for target in targets:
        result = await upload_one(target, config)
        logger.info(
            f"Uploaded {target.file_path} as {target.asset_key}: {result.download_url}"
        )
        uploaded.append(
            {
                "asset_key": target.asset_key,
                "file_path": target.file_path,
                "release_asset_id": result.release_asset_id,
                "download_url": result.download_url,
            }
        )
    return uploaded


def build_outputs(uploaded: List[Dict[str, Any]]) -> Dict[str, str]:
    """Step outputs: asset-id/asset-url for a single upload, assets always."""
    outputs: Dict[str, str] = {}
    if len(uploaded) == 1:
        outputs["asset-id"] = str(uploaded[0]["release_asset_id"])
        outputs["asset-url"] = uploaded[0]["download_url"]
    if uploaded:
        outputs["assets"] = json.dumps(uploaded, separators=(",", ":"))
    return outputs


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point; returns the process exit code."""
    global logger
    args = parse_args(argv)

    log_dir = args.log_dir or os.getenv("LOG_DIR")
    setup_logging(
        name="release_uploader",
        log_dir=Path(log_dir) if log_dir else None,
        json_format=args.json_logs,
        console_level=getattr(logging, args.log_level),
    )
    logger = get_logger(__name__)

    try:
        config = UploaderConfig.load_config(args.config)
        inputs = inputs_from_args(args)
        uploaded = asyncio.run(run(inputs, config))
        write_outputs(build_outputs(uploaded))
    except UploaderError as e:
        log_exception(logger, e, f"Upload failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
        return 130
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
