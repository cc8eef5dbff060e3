"""Command line interface for the bridge.

Usage:
    # Store the server URL and device token
    assetvault-bridge init --api-url https://vault.example.com --token avb_...

    # Watch an export folder and upload finished files to a project
    assetvault-bridge start --watch ~/Music/Exports --project-id <id>

    # Check the stored token against the server
    assetvault-bridge status
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path

from assetvault.bridge.client import HttpRegistrar, VaultClient, VaultClientError
from assetvault.bridge.config import BridgeConfig, BridgeConfigError, load_config, save_config
from assetvault.core.logging import get_logger, setup_logging
from assetvault.db.models import SourceProvider
from assetvault.services.errors import ConfigurationError
from assetvault.services.folder_watcher import FolderWatcher
from assetvault.services.metadata import MetadataExtractor
from assetvault.services.pipeline import FileOutcome, ImportPipeline
from assetvault.services.sources import SourceFile

logger = get_logger(__name__)

MODES = {
    "local": (SourceProvider.LOCAL_EXPORT, "FL Export"),
    "drive-desktop": (SourceProvider.DRIVE_DESKTOP, "Drive Desktop Export"),
}


def cmd_init(args: argparse.Namespace) -> int:
    api_url = args.api_url or input("Vault API URL: ").strip()
    token = args.token or input("Device token: ").strip()
    if not api_url or not token:
        print("ERROR: API URL and token are required")
        return 1

    config = BridgeConfig(api_url=api_url, token=token, device_name=args.name)
    path = save_config(config, args.config)
    print(f"Configuration saved to {path}")
    return 0


async def _status(config: BridgeConfig) -> int:
    async with VaultClient(config) as client:
        try:
            device = await client.status()
        except VaultClientError as e:
            print(f"ERROR: {e}")
            return 1

    print(f"API:         {config.api_url}")
    print(f"Device:      {device['name']} ({device['id']})")
    print(f"Last import: {device.get('last_import_at') or 'never'}")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except BridgeConfigError as e:
        print(f"ERROR: {e}")
        return 1
    return asyncio.run(_status(config))


async def run_bridge(
    config: BridgeConfig,
    watch_path: Path,
    project_id: str,
    mode: str = "local",
    stop_event: asyncio.Event | None = None,
    stability_window: float | None = None,
) -> None:
    """Watch ``watch_path`` and import each stable file until stopped.

    Every imported file becomes its own project version.
    """
    provider, label = MODES[mode]
    stop_event = stop_event or asyncio.Event()

    async with VaultClient(config) as client:
        extractor = MetadataExtractor()
        registrar = HttpRegistrar(client)
        pipeline: ImportPipeline | None = None

        async def handle(source_file: SourceFile) -> None:
            result = await pipeline.process(source_file)
            if result.outcome == FileOutcome.IMPORTED:
                print(f"Imported {source_file.name} (asset {result.asset_id})")
            elif result.outcome == FileOutcome.SKIPPED:
                print(f"Skipped {source_file.name} (already in vault)")
            else:
                print(f"Failed {source_file.name}: {result.error}")

        watcher = FolderWatcher(
            watch_path,
            handler=handle,
            stability_window=stability_window,
            provider=provider,
            label=label,
        )
        pipeline = ImportPipeline(
            watcher,
            registrar,
            project_id,
            extractor=extractor,
            version_per_file=True,
        )

        await watcher.start()
        print(f"Watching {watch_path} for project {project_id} (mode: {mode}). Press Ctrl+C to stop.")
        try:
            await stop_event.wait()
        finally:
            await watcher.stop()


def cmd_start(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except BridgeConfigError as e:
        print(f"ERROR: {e}")
        return 1

    watch_path = args.watch.expanduser()
    if not watch_path.is_dir():
        print(f"ERROR: Watch path does not exist: {watch_path}")
        return 1

    async def _main() -> None:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)
        await run_bridge(config, watch_path, args.project_id, args.mode, stop_event)

    try:
        asyncio.run(_main())
    except ConfigurationError as e:
        print(f"ERROR: {e}")
        return 1
    print("Bridge stopped")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assetvault-bridge",
        description="Watch a local export folder and upload new files to AssetVault",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Config file (default: ~/.assetvault/bridge-config.json)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init", help="Store the API URL and device token")
    init_parser.add_argument("--api-url", help="Vault server URL, e.g. https://vault.example.com")
    init_parser.add_argument("--token", help="Device token from POST /api/v1/bridge/devices")
    init_parser.add_argument("--name", help="Name of this device")
    init_parser.set_defaults(func=cmd_init)

    start_parser = subparsers.add_parser("start", help="Watch a folder and upload stable files")
    start_parser.add_argument("--watch", type=Path, required=True, help="Folder to watch")
    start_parser.add_argument("--project-id", required=True, help="Project to import into")
    start_parser.add_argument(
        "--mode",
        choices=sorted(MODES),
        default="local",
        help="local: DAW export folder; drive-desktop: Google Drive for desktop folder",
    )
    start_parser.set_defaults(func=cmd_start)

    status_parser = subparsers.add_parser("status", help="Check the connection to the server")
    status_parser.set_defaults(func=cmd_status)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
