import logging
from unittest.mock import MagicMock, patch

import pytest

from main import build_parser, main, setup_logging


@pytest.fixture
def localappdata(tmp_path, monkeypatch):
    path = tmp_path / 'localappdata'
    monkeypatch.setenv('LOCALAPPDATA', str(path))
    return path


class TestSetupLogging:
    def test_creates_log_dir(self, localappdata):
        log_file = setup_logging()
        assert log_file == localappdata / 'TileViewer' / 'log' / 'tileviewer.log'
        assert log_file.parent.is_dir()


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.profile == 'default'
        assert args.zoom is None
        assert not args.no_animations
        assert not args.no_probe
        assert not args.debug

    def test_flags(self):
        args = build_parser().parse_args(
            ['--profile', 'work', '--zoom', '9', '--no-animations', '--no-probe', '--debug']
        )
        assert args.profile == 'work'
        assert args.zoom == 9
        assert args.no_animations
        assert args.no_probe
        assert args.debug


class TestMain:
    def test_missing_profile_returns_2(self, localappdata, tmp_path):
        assert main(['--profile', str(tmp_path / 'missing.toml')]) == 2

    def test_invalid_zoom_override_returns_2(self, localappdata):
        assert main(['--zoom', '99']) == 2

    def test_runs_application(self, localappdata):
        pytest.importorskip('PySide6')
        app = MagicMock()
        app.exec.return_value = 0
        window = MagicMock()
        fetcher = MagicMock()
        with patch(
            'gui.app.create_application', return_value=(app, window, fetcher)
        ) as create:
            code = main(['--zoom', '3', '--no-animations', '--no-probe'])

        assert code == 0
        settings = create.call_args[0][0]
        assert settings.initial_zoom == 3
        assert settings.use_animations is False
        assert create.call_args[1] == {'probe_servers': False}
        window.show.assert_called_once()
        window.check_active_server.assert_called_once()
        fetcher.close.assert_called_once()

    def test_fetcher_closed_on_error(self, localappdata):
        pytest.importorskip('PySide6')
        app = MagicMock()
        app.exec.side_effect = RuntimeError('crash')
        fetcher = MagicMock()
        with patch('gui.app.create_application', return_value=(app, MagicMock(), fetcher)):
            with pytest.raises(RuntimeError):
                main(['--no-probe'])
        fetcher.close.assert_called_once()


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
