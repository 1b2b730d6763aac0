"""
hexlists CLI - Command Line Interface

Download lists from Hexagon into the local database and inspect the
local state.
"""

import argparse
import getpass
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from . import __version__
from .config import ConfigManager, HexListsConfig

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None,
                  max_bytes: int = 10 * 1024 * 1024, backup_count: int = 3) -> None:
    """
    Configure console logging and, if a log file is given, a rotating file log

    Args:
        level: Logging level name
        log_file: Path of the log file
        max_bytes: Rotate the log file at this size
        backup_count: Number of rotated log files to keep
    """
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file is None:
        return

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    except OSError as e:
        logger.warning(f"Could not set up file logging: {e}")
        logger.info("Continuing with console logging only")


def _load_config(config_manager: ConfigManager) -> Optional[HexListsConfig]:
    if not config_manager.config_exists():
        print("❌ No configuration found. Run 'hexlists setup' first.")
        return None
    return config_manager.load_config()


def _format_sync_time(timestamp_ms: int) -> str:
    if not timestamp_ms:
        return "never"
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()


def cmd_setup(args) -> int:
    """Interactive setup"""
    config_manager = ConfigManager(args.config_dir)
    config = HexListsConfig()
    if config_manager.config_exists():
        try:
            config = config_manager.load_config()
            print(f"ℹ️ Updating existing configuration at {config_manager.get_config_location()}")
        except ValueError as e:
            print(f"⚠️ Existing configuration is invalid, starting over: {e}")

    try:
        email = input(f"Hexagon account email [{config.account_email}]: ").strip()
        token = getpass.getpass("Hexagon access token (leave empty to keep current): ").strip()
    except (EOFError, KeyboardInterrupt):
        print("\n⏹️ Setup cancelled by user")
        return 130

    if email:
        config.account_email = email
    if token:
        config.hexagon_token = token

    if not config.hexagon_token:
        print("⚠️ No access token configured, 'hexlists sync' will fail until one is set")

    config_manager.save_config(config)
    print(f"✅ Configuration saved to {config_manager.get_config_location()}")
    return 0


def cmd_sync(args) -> int:
    """Download lists from Hexagon"""
    from .hexagon_client import HexagonAccount
    from .lists_sync import ListsSync
    from .settings import SyncSettings
    from .state_manager import StateManager

    try:
        config_manager = ConfigManager(args.config_dir)
        config = _load_config(config_manager)
        if config is None:
            return 1

        setup_logging(
            "DEBUG" if args.verbose else config.logging_level,
            config_manager.get_resource_path(config.log_file),
            config.log_max_bytes,
            config.log_backup_count
        )

        settings = SyncSettings(str(config_manager.get_resource_path(config.settings_file)))
        account = HexagonAccount(config.hexagon_token, config.base_url, config.request_timeout_seconds)
        if not account.is_signed_in():
            print("❌ Not signed in. Run 'hexlists setup' to configure an access token.")
            return 1

        has_merged_lists = settings.has_merged_lists() and not args.full
        if has_merged_lists:
            print("🔄 Downloading changed lists...")
        else:
            print("🔄 Downloading all lists...")

        with StateManager(str(config_manager.get_resource_path(config.database_path))) as state:
            lists_sync = ListsSync(account, state, settings, batch_size=config.batch_size)
            success = lists_sync.download_from_hexagon(has_merged_lists)

            if not success:
                print("❌ Lists download failed, see log for details")
                return 1

            if not has_merged_lists and not settings.has_merged_lists():
                settings.set_has_merged_lists(True)
                logger.info("Lists merged with Hexagon, next downloads will be incremental")

            stats = state.get_statistics()

        print(f"✅ Lists download completed: {stats['total_lists']} lists, {stats['total_items']} items")
        return 0

    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Sync failed: {e}")
        return 1


def cmd_status(args) -> int:
    """Show last sync info and local counts"""
    from .settings import SyncSettings
    from .state_manager import StateManager

    try:
        config_manager = ConfigManager(args.config_dir)
        config = _load_config(config_manager)
        if config is None:
            return 1

        settings = SyncSettings(str(config_manager.get_resource_path(config.settings_file)))
        with StateManager(str(config_manager.get_resource_path(config.database_path))) as state:
            stats = state.get_statistics()

        print("📊 hexlists status")
        print(f"   Account: {config.account_email or 'unknown'}")
        print(f"   Signed in: {'yes' if config.hexagon_token else 'no'}")
        print(f"   Merged with Hexagon: {'yes' if settings.has_merged_lists() else 'no'}")
        print(f"   Last lists sync: {_format_sync_time(settings.get_last_lists_sync_time())}")
        print(f"   Local lists: {stats['total_lists']}")
        print(f"   Local list items: {stats['total_items']}")
        return 0

    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Failed to get status: {e}")
        return 1


def cmd_lists(args) -> int:
    """Show local lists"""
    from .models import ItemType
    from .state_manager import StateManager

    try:
        config_manager = ConfigManager(args.config_dir)
        config = _load_config(config_manager)
        if config is None:
            return 1

        with StateManager(str(config_manager.get_resource_path(config.database_path))) as state:
            lists = state.get_lists()
            stats = state.get_statistics()

            print("📋 Local Lists:")
            if not lists:
                print("  No lists yet. Run 'hexlists sync' to download them.")
                return 0

            for i, local_list in enumerate(lists, 1):
                count = stats['items_per_list'].get(local_list.list_id, 0)
                print(f"  {i}. {local_list.name} ({count} items) [{local_list.list_id}]")
                if args.items:
                    for item in state.get_list_items(local_list.list_id):
                        print(f"       - {ItemType(item.item_type).name.lower()} {item.item_ref_id}")

        return 0

    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Failed to list: {e}")
        return 1


def cmd_config(args) -> int:
    """Configuration management"""
    config_manager = ConfigManager(args.config_dir)

    if args.action == "show":
        try:
            config = _load_config(config_manager)
        except (FileNotFoundError, ValueError) as e:
            print(f"❌ Config command failed: {e}")
            return 1
        if config is None:
            return 1

        print("⚙️ Current hexlists Configuration:")
        print(f"  Location: {config_manager.get_config_location()}")
        print(f"  Account: {config.account_email or 'unknown'}")
        print(f"  Base URL: {config.base_url}")
        print(f"  Access token: {'configured' if config.hexagon_token else 'missing'}")
        print(f"  Batch size: {config.batch_size}")
        return 0

    elif args.action == "check":
        if not config_manager.config_exists():
            print("❌ No configuration found. Run 'hexlists setup' first.")
            return 1

        print("🔍 Validating configuration...")
        try:
            config_manager.load_config()
            print("✅ Configuration is valid")
            return 0
        except ValueError as e:
            print(f"❌ Configuration validation failed: {e}")
            return 1

    else:
        print(f"❌ Unknown config action: {args.action}")
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser"""
    parser = argparse.ArgumentParser(
        prog="hexlists",
        description="Download Hexagon lists into a local database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  hexlists setup                 # Configure account and access token
  hexlists sync                  # Download lists changed since last sync
  hexlists sync --full           # Download all lists
  hexlists status                # Show last sync info
  hexlists lists --items         # Show local lists with their items
  hexlists config check          # Validate configuration

For detailed help on any command, use: hexlists <command> --help
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"hexlists {__version__}"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--config-dir",
        type=Path,
        help="Directory containing configuration files (default: user config directory)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "setup",
        help="Configure account and access token",
        description="Interactively write the configuration file"
    )

    sync_parser = subparsers.add_parser(
        "sync",
        help="Download lists from Hexagon",
        description="Download lists from Hexagon and merge them into the local database"
    )
    sync_parser.add_argument(
        "--full",
        action="store_true",
        help="Download all lists instead of only those changed since the last sync"
    )

    subparsers.add_parser(
        "status",
        help="Show last sync info",
        description="Display last sync time and local list counts"
    )

    lists_parser = subparsers.add_parser(
        "lists",
        help="Show local lists",
        description="Show lists stored in the local database"
    )
    lists_parser.add_argument(
        "--items",
        action="store_true",
        help="Also show the items of each list"
    )

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="View or validate configuration"
    )
    config_parser.add_argument(
        "action",
        choices=["show", "check"],
        help="Configuration action to perform"
    )

    return parser


def main(argv=None) -> int:
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    log_level = "DEBUG" if args.verbose else "INFO"
    setup_logging(log_level)

    if not args.command:
        parser.print_help()
        return 0

    command_handlers = {
        "setup": cmd_setup,
        "sync": cmd_sync,
        "status": cmd_status,
        "lists": cmd_lists,
        "config": cmd_config,
    }

    handler = command_handlers.get(args.command)
    if handler:
        try:
            return handler(args)
        except KeyboardInterrupt:
            print("\n⏹️ Cancelled by user")
            return 130
        except Exception as e:
            logger.exception("Unexpected error in command handler")
            print(f"❌ Unexpected error: {e}")
            return 1
    else:
        print(f"❌ Unknown command: {args.command}")
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
