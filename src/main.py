"""Main entry point for TileViewer (PySide6)."""

import argparse
import logging
import os
import sys
from pathlib import Path

from pydantic import ValidationError

from domain.profiles import load_profile
from shared.constants import APP_NAME, DEFAULT_PROFILE
from shared.diagnostics import log_memory_usage, log_thread_status

logger = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> Path:
    """Configure application logging to LOCALAPPDATA.

    Returns:
        Path of the log file.
    """
    local_base = (
        Path(os.getenv('LOCALAPPDATA') or Path.home() / 'AppData' / 'Local') / APP_NAME
    )
    log_dir = local_base / 'log'
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / 'tileviewer.log'

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(str(log_file), encoding='utf-8'),
        ],
    )
    return log_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='TileViewer - pannable, zoomable OpenStreetMap tile viewer'
    )
    parser.add_argument(
        '--profile',
        default=DEFAULT_PROFILE,
        help='Имя профиля из configs/profiles или путь к TOML файлу',
    )
    parser.add_argument('--zoom', type=int, default=None, help='Стартовый зум')
    parser.add_argument(
        '--no-animations',
        action='store_true',
        help='Отключить анимацию масштабирования',
    )
    parser.add_argument(
        '--no-probe',
        action='store_true',
        help='Не проверять доступность тайловых серверов при запуске',
    )
    parser.add_argument('--debug', action='store_true', help='Подробный лог')
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    log_file = setup_logging(logging.DEBUG if args.debug else logging.INFO)
    logger.info('Starting %s, log file: %s', APP_NAME, log_file)

    try:
        settings = load_profile(args.profile)
    except (FileNotFoundError, ValidationError) as e:
        logger.error('Invalid profile %s: %s', args.profile, e)
        return 2

    overrides: dict[str, object] = {}
    if args.zoom is not None:
        overrides['initial_zoom'] = args.zoom
    if args.no_animations:
        overrides['use_animations'] = False
    if overrides:
        try:
            settings = settings.model_validate(settings.model_dump() | overrides)
        except ValidationError as e:
            logger.error('Invalid command line overrides: %s', e)
            return 2

    # PySide6 импортируется только после разбора настроек
    from gui.app import create_application

    log_memory_usage('before creating application')
    app, window, fetcher = create_application(settings, probe_servers=not args.no_probe)
    try:
        app.setQuitOnLastWindowClosed(True)
        window.show()
        window.check_active_server()
        logger.info('Application started successfully')
        log_thread_status('application ready')
        return app.exec()
    finally:
        fetcher.close()
        log_memory_usage('application shutdown')


if __name__ == '__main__':
    sys.exit(main())
