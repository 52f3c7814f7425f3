"""Command line interface for netdisk_uploader."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import (
    FolderUploadProgressDisplay,
    SingleFileUploadProgress,
    render_configuration_summary,
)
from .config import (
    create_default_config,
    load_config,
    load_config_for_auth,
    resolve_config_path,
    save_token,
)
from .errors import UploaderError
from .models import UploadConfig
from .orchestrator import UploadOrchestrator
from .orchestrator.file_collector import parse_exclude_patterns
from .services.api_client import XpanUploadClient
from .services.auth import OAuthClient, ensure_fresh_token, wait_for_callback

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "critical": logging.CRITICAL,
}


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    debug: bool = False,
    quiet: bool = False,
) -> str:
    """
    Configure logging.

    Console output goes through RichHandler; --log-file adds a plain file
    handler at the same level. --quiet keeps only warnings on the console.
    Returns the effective level name.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    if debug:
        level = logging.DEBUG
    else:
        name = (log_level or os.getenv("LOG_LEVEL") or "info").lower()
        if name not in LOG_LEVELS:
            print(f"WARNING: invalid log level {name!r}, using info", file=sys.stderr)
        level = LOG_LEVELS.get(name, logging.INFO)

    console_handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=True,
        show_path=False,
    )
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    console_handler.setLevel(max(level, logging.WARNING) if quiet else level)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(level)
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


async def _run_auth(config_path: Path, port: int) -> int:
    config = load_config_for_auth(config_path)
    token = await wait_for_callback(config.oauth, port=port)
    save_token(token, config_path)
    logging.getLogger(__name__).info("Authorization complete, access_token saved")
    return 0


async def _run_code(config_path: Path, code: str) -> int:
    config = load_config_for_auth(config_path)
    token = await OAuthClient(config.oauth).exchange_code(code)
    save_token(token, config_path)
    logging.getLogger(__name__).info("access_token obtained and saved")
    return 0


async def _run_refresh(config_path: Path) -> int:
    config = load_config_for_auth(config_path)
    if not config.refresh_token:
        raise CLIError("no refresh_token in config file, authorize again with --auth")
    token = await OAuthClient(config.oauth).refresh(config.refresh_token)
    save_token(token, config_path)
    logging.getLogger(__name__).info("access_token refreshed")
    return 0


async def _run_upload(args: argparse.Namespace, config_path: Path, source: Path, is_folder: bool) -> int:
    app_config = load_config(config_path)
    app_config = await ensure_fresh_token(app_config, config_path)

    upload_config = UploadConfig(
        app_path=app_config.app_path,
        max_concurrency=args.concurrent,
        cache_dir=args.cache_dir,
    )
    show_progress = not args.quiet

    async with XpanUploadClient() as client:
        orchestrator = UploadOrchestrator(client, app_config.access_token, upload_config)
        logging.getLogger(__name__).info(f"Using chunk cache directory: {orchestrator.cache.ensure()}")

        if not is_folder:
            remote_name = args.name or source.name
            progress = SingleFileUploadProgress(source.name, enabled=show_progress)
            progress.start()
            try:
                result = await orchestrator.upload_file(source, remote_name, progress.update)
            except UploaderError as exc:
                progress.complete(error=str(exc))
                raise
            progress.complete(result)
            return 0

        display = FolderUploadProgressDisplay(show_progress=show_progress)
        process = orchestrator.upload_folder(
            source,
            exclude_patterns=parse_exclude_patterns(args.exclude),
            keep_structure=not args.flatten,
            max_concurrency=args.concurrent,
        )
        process.on_file_start(display.on_file_start)
        process.on_file_complete(display.on_file_complete)
        process.on_file_fail(display.on_file_fail)
        process.on_progress(display.on_progress)
        process.on_finish(display.on_finish)
        process.on_error(display.on_error)

        result = await process.wait()
        if result.success:
            return 0
        print(f"ERROR: {result.failed_files} of {result.total_files} files failed to upload", file=sys.stderr)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netdisk-up",
        description="Upload a file or folder to the netdisk using chunked, resumable-per-part uploads.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--file", type=Path, default=None, help="Local file to upload")
    source.add_argument("--folder", type=Path, default=None, help="Local folder to upload")
    parser.add_argument("--name", default=None, help="Remote file name (default: local file name)")
    parser.add_argument(
        "--exclude",
        default="",
        help="Comma separated patterns to exclude (e.g. '*.log,build')",
    )
    parser.add_argument(
        "--flatten",
        action="store_true",
        help="Put every file directly under the folder name instead of keeping the tree",
    )
    parser.add_argument("--concurrent", type=int, default=3, help="Maximum parallel file uploads (default 3)")
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help="Chunk cache directory (default ./.chunks)",
    )

    parser.add_argument("--init", action="store_true", help="Create a config file with placeholders")
    parser.add_argument("--auth", action="store_true", help="Authorize in the browser via a local callback")
    parser.add_argument("--port", type=int, default=8080, help="Callback port for --auth (default 8080)")
    parser.add_argument("--code", default=None, help="Exchange an authorization code for tokens")
    parser.add_argument("--refresh-token", action="store_true", help="Refresh the access token")
    parser.add_argument("--config", type=Path, default=None, help="Config file (default ./config.json)")
    parser.add_argument("--env-file", type=Path, default=None, help="Load environment variables from this .env file")

    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file")
    parser.add_argument("--log-level", default=None, help="debug, info, warn, error or fatal (default info)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--quiet", action="store_true", help="Less output: warnings only, no progress lines")
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_level = _setup_logging(
        log_level=args.log_level,
        log_file=args.log_file,
        debug=args.debug,
        quiet=args.quiet,
    )
    config_path = resolve_config_path(args.config)

    try:
        if args.init:
            path = create_default_config(config_path)
            print(f"Created {path}. Fill in client_id, client_secret and app_path, then run --auth.")
            return 0
        if args.auth:
            return asyncio.run(_run_auth(config_path, args.port))
        if args.code:
            return asyncio.run(_run_code(config_path, args.code))
        if args.refresh_token:
            return asyncio.run(_run_refresh(config_path))

        if args.file is None and args.folder is None:
            parser.print_help()
            return 1

        if args.concurrent < 1:
            raise CLIError("--concurrent must be at least 1")

        is_folder = args.folder is not None
        source = Path(args.folder if is_folder else args.file).expanduser()
        if not source.exists():
            raise CLIError(f"source does not exist: {source}")
        if is_folder and not source.is_dir():
            raise CLIError(f"not a folder: {source}")
        if not is_folder and not source.is_file():
            raise CLIError(f"not a file: {source}")

        if not args.quiet:
            render_configuration_summary(
                {
                    "Source": str(source),
                    "Source Type": "folder" if is_folder else "file",
                    "Remote Name": args.name or source.name,
                    "Structure": "flatten" if args.flatten else "keep",
                    "Exclude": args.exclude or "-",
                    "Concurrency": args.concurrent if is_folder else 1,
                    "Cache Dir": str(args.cache_dir) if args.cache_dir else "./.chunks",
                    "Config": str(config_path),
                    "Env File": str(used_env_file) if used_env_file else "-",
                    "Logging": effective_level,
                }
            )

        return asyncio.run(_run_upload(args, config_path, source, is_folder))
    except (CLIError, UploaderError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
