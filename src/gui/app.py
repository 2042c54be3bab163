"""Main window: map, place search, tile server menu."""

from __future__ import annotations

import concurrent.futures
import logging
from typing import TYPE_CHECKING

from PySide6.QtCore import QObject, Qt, Signal, Slot
from PySide6.QtGui import QAction, QActionGroup
from PySide6.QtWidgets import (
    QApplication,
    QDockWidget,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QVBoxLayout,
    QWidget,
)

from gui.map_widget import MapWidget
from render.viewport import MapViewport
from search.geocoder import (
    apply_search_result,
    format_result_description,
    format_result_label,
    search_places,
)
from shared.constants import (
    ABOUT_MSG,
    APP_VERSION,
    HTTP_PROBE_TIMEOUT,
    NAMEFINDER_URL,
    ViewEvent,
)
from shared.observable import CallbackObserver, EventData
from tiles.cache import TileCache
from tiles.fetcher import TileFetcher
from tiles.servers import TileServerRegistry

if TYPE_CHECKING:
    from domain.models import SearchResult, ViewerSettings
    from tiles.servers import TileServer

logger = logging.getLogger(__name__)

# Сколько серверов получают горячие клавиши Ctrl+1..Ctrl+9
MAX_SERVER_SHORTCUTS = 9


class _SearchBridge(QObject):
    """Delivers search results from the fetcher thread to the GUI thread."""

    finished = Signal(str, object)  # query, list[SearchResult]
    failed = Signal(str, str)  # query, error message


class SearchPanel(QWidget):
    result_activated = Signal(object)  # SearchResult

    def __init__(
        self,
        fetcher: TileFetcher,
        *,
        namefinder_url: str = NAMEFINDER_URL,
        parent: QWidget | None = None,
    ) -> None:
        super().__init__(parent)
        self._fetcher = fetcher
        self._namefinder_url = namefinder_url
        self._results: list[SearchResult] = []
        self._last_query = ''
        self._searching = False
        self._bridge = _SearchBridge()
        self._bridge.finished.connect(self._on_results)
        self._bridge.failed.connect(self._on_failed)
        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.addWidget(QLabel('Find:'))
        self._query_edit = QLineEdit()
        self._query_edit.setPlaceholderText('Place name')
        self._query_edit.returnPressed.connect(self._start_search)
        layout.addWidget(self._query_edit)
        self._status_label = QLabel('')
        layout.addWidget(self._status_label)
        self._results_list = QListWidget()
        self._results_list.setWordWrap(True)
        self._results_list.itemActivated.connect(self._on_item_activated)
        self._results_list.itemClicked.connect(self._on_item_activated)
        layout.addWidget(self._results_list, 1)

    @property
    def results(self) -> list[SearchResult]:
        return list(self._results)

    @Slot()
    def _start_search(self) -> None:
        query = self._query_edit.text().strip()
        if self._searching or not query or query == self._last_query:
            return
        self._last_query = query
        self._searching = True
        self._query_edit.setEnabled(False)
        self._status_label.setText('searching...')
        self._results_list.clear()
        future = self._fetcher.submit(
            lambda session: search_places(session, query, base_url=self._namefinder_url)
        )
        future.add_done_callback(lambda f: self._deliver(query, f))

    def _deliver(self, query: str, future: concurrent.futures.Future) -> None:
        # Вызывается в потоке загрузчика: только эмит сигналов
        exc = future.exception()
        if exc is not None:
            self._bridge.failed.emit(query, str(exc))
        else:
            self._bridge.finished.emit(query, future.result())

    @Slot(str, object)
    def _on_results(self, query: str, results: list[SearchResult]) -> None:
        self._searching = False
        self._query_edit.setEnabled(True)
        self._results = list(results)
        self.show_results(self._results)
        self._status_label.setText(f'{len(results)} result(s) for "{query}"')

    @Slot(str, str)
    def _on_failed(self, query: str, message: str) -> None:
        logger.error('Search for "%s" failed: %s', query, message)
        self._searching = False
        self._query_edit.setEnabled(True)
        # Разрешаем повторить тот же запрос после ошибки
        self._last_query = ''
        self._status_label.setText('Search failed')

    def show_results(self, results: list[SearchResult]) -> None:
        self._results_list.clear()
        for index, result in enumerate(results):
            text = f'{format_result_label(result)}\n{format_result_description(result)}'
            item = QListWidgetItem(text)
            item.setData(Qt.ItemDataRole.UserRole, index)
            self._results_list.addItem(item)

    @Slot(QListWidgetItem)
    def _on_item_activated(self, item: QListWidgetItem) -> None:
        index = item.data(Qt.ItemDataRole.UserRole)
        if index is None or not (0 <= index < len(self._results)):
            return
        self.result_activated.emit(self._results[index])


class MainWindow(QMainWindow):
    """Main application window."""

    def __init__(
        self,
        viewport: MapViewport,
        cache: TileCache,
        fetcher: TileFetcher,
        *,
        fps: int,
        slow_threshold_ms: float,
        namefinder_url: str = NAMEFINDER_URL,
        show_overlay: bool = False,
    ) -> None:
        super().__init__()
        self._viewport = viewport
        self._fetcher = fetcher
        self._map = MapWidget(
            viewport, cache, fetcher, fps=fps, slow_threshold_ms=slow_threshold_ms
        )
        self._search = SearchPanel(fetcher, namefinder_url=namefinder_url)
        self._server_actions: dict[int, QAction] = {}

        self._observer_adapter = CallbackObserver(self._handle_view_event)
        self._viewport.add_observer(self._observer_adapter)

        self._setup_ui(show_overlay=show_overlay)
        self._setup_connections()
        logger.info('MainWindow initialized')

    @property
    def map_widget(self) -> MapWidget:
        return self._map

    @property
    def search_panel(self) -> SearchPanel:
        return self._search

    def _setup_ui(self, *, show_overlay: bool) -> None:
        self.setWindowTitle('TileViewer')
        self.setMinimumSize(400, 300)
        self.resize(1100, 750)
        self.setCentralWidget(self._map)

        dock = QDockWidget('Search', self)
        dock.setObjectName('searchDock')
        dock.setWidget(self._search)
        self.addDockWidget(Qt.DockWidgetArea.LeftDockWidgetArea, dock)

        menubar = self.menuBar()

        view_menu = menubar.addMenu('View')
        self._overlay_action = QAction('Info overlay', self)
        self._overlay_action.setCheckable(True)
        self._overlay_action.setChecked(show_overlay)
        self._overlay_action.setShortcut('Ctrl+I')
        self._overlay_action.toggled.connect(self._map.set_show_overlay)
        view_menu.addAction(self._overlay_action)
        self._map.set_show_overlay(show_overlay)

        self._animations_action = QAction('Animations', self)
        self._animations_action.setCheckable(True)
        self._animations_action.setChecked(self._viewport.use_animations)
        self._animations_action.toggled.connect(self._set_use_animations)
        view_menu.addAction(self._animations_action)

        view_menu.addAction(dock.toggleViewAction())

        servers_menu = menubar.addMenu('Tile servers')
        group = QActionGroup(self)
        group.setExclusive(True)
        for i, server in enumerate(self._viewport.registry):
            action = QAction(server.url, self)
            action.setCheckable(True)
            action.setChecked(server is self._viewport.server)
            if i < MAX_SERVER_SHORTCUTS:
                action.setShortcut(f'Ctrl+{i + 1}')
            action.triggered.connect(
                lambda _checked=False, s=server: self._activate_server(s)
            )
            group.addAction(action)
            servers_menu.addAction(action)
            self._server_actions[id(server)] = action
        servers_menu.addSeparator()
        next_action = QAction('Next tile server', self)
        next_action.setShortcut('Ctrl+N')
        next_action.triggered.connect(self._viewport.next_tile_server)
        servers_menu.addAction(next_action)

        help_menu = menubar.addMenu('Help')
        about_action = QAction('About', self)
        about_action.triggered.connect(self._show_about)
        help_menu.addAction(about_action)

    def _setup_connections(self) -> None:
        self._search.result_activated.connect(self._on_search_result)
        self._map.server_unreachable.connect(self._warn_server_unreachable)

    # --- handlers ----------------------------------------------------------

    def _handle_view_event(self, event_data: EventData) -> None:
        if event_data.event is ViewEvent.SERVER_CHANGED:
            action = self._server_actions.get(id(self._viewport.server))
            if action is not None:
                action.setChecked(True)

    def _activate_server(self, server: TileServer) -> None:
        self._viewport.activate_server(server)

    @Slot(bool)
    def _set_use_animations(self, enabled: bool) -> None:
        self._viewport.use_animations = enabled
        if not enabled:
            self._viewport.cancel_animation()

    @Slot(object)
    def _on_search_result(self, result: SearchResult) -> None:
        apply_search_result(self._viewport, result)
        self._map.setFocus()

    @Slot(str)
    def _warn_server_unreachable(self, url: str) -> None:
        QMessageBox.critical(
            self,
            'TileServer not reachable.',
            f'The tileserver "{url}" could not be reached.\n'
            'Maybe configuring a http-proxy is required.',
        )

    def check_active_server(self) -> bool:
        return self._viewport.check_active_server()

    def _show_about(self) -> None:
        QMessageBox.about(self, 'About TileViewer', ABOUT_MSG)

    def closeEvent(self, event) -> None:
        self._viewport.remove_observer(self._observer_adapter)
        super().closeEvent(event)


def create_application(
    settings: ViewerSettings,
    *,
    probe_servers: bool = True,
) -> tuple[QApplication, MainWindow, TileFetcher]:
    """Create the QApplication, the engine objects and the main window."""
    app = QApplication.instance() or QApplication([])
    app.setApplicationName('TileViewer')
    app.setApplicationVersion(APP_VERSION)

    registry = TileServerRegistry.from_settings(settings)
    cache = TileCache(settings.cache_capacity)
    fetcher = TileFetcher(
        concurrency=settings.fetch_concurrency,
        user_agent=settings.user_agent,
        timeout=settings.fetch_timeout_s,
    )
    fetcher.start()

    if probe_servers:
        try:
            results = fetcher.submit(registry.probe_all).result(
                HTTP_PROBE_TIMEOUT * 2
            )
            logger.info('Tile server probe: %s', results)
        except concurrent.futures.TimeoutError:
            logger.error('Tile server probe timed out')

    viewport = MapViewport(
        registry,
        zoom=settings.initial_zoom,
        position=settings.initial_position,
        use_animations=settings.use_animations,
        animation_duration_ms=settings.animation_duration_ms,
        tile_size=settings.tile_size,
    )
    window = MainWindow(
        viewport,
        cache,
        fetcher,
        fps=settings.animation_fps,
        slow_threshold_ms=settings.slow_paint_threshold_ms,
        namefinder_url=settings.namefinder_url,
        show_overlay=settings.show_overlay,
    )
    return app, window, fetcher
