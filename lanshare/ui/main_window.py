"""
Main window for the LAN file sharing application.
"""

import logging
import asyncio
from typing import Optional
from PyQt5.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QGridLayout, QGroupBox,
    QLabel, QPushButton, QListWidget, QLineEdit, QPlainTextEdit
)
from PyQt5.QtCore import Qt, QObject, pyqtSignal, pyqtSlot
from PyQt5.QtGui import QFont

from ..app import SharingNode
from ..networking import EventSink, ServerState
from ..utils.settings import Settings

logger = logging.getLogger(__name__)


class QtEventSink(QObject, EventSink):
    """Event sink that re-emits notifications as Qt signals.

    Connected slots run on the GUI thread, so the networking code can
    report from any thread.
    """

    log_message = pyqtSignal(str)
    status_changed = pyqtSignal(object, int)
    host_found = pyqtSignal(str)

    def log(self, text: str) -> None:
        logger.info(text)
        self.log_message.emit(text)

    def server_status(self, state: ServerState, port: int) -> None:
        self.status_changed.emit(state, port)

    def host_discovered(self, host: str) -> None:
        self.host_found.emit(host)


class MainWindow(QMainWindow):
    """Main window for the application."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize the main window.

        Args:
            settings: Application settings; defaults are used if None
        """
        super().__init__()

        self.settings = settings or Settings()
        self.events = QtEventSink(self)
        self.node = SharingNode(self.settings, self.events)

        self.setWindowTitle("P2P File Sharing")
        self.resize(600, 700)

        self._init_ui()

        self.events.log_message.connect(self._append_log)
        self.events.status_changed.connect(self._on_status_changed)
        self.events.host_found.connect(self._on_host_found)

    def _init_ui(self):
        """Initialize the user interface."""
        central_widget = QWidget()
        main_layout = QVBoxLayout(central_widget)

        # Server status and control
        top_layout = QHBoxLayout()
        self.status_label = QLabel("Server Status: Inactive")
        self.status_label.setAlignment(Qt.AlignCenter)
        font = QFont()
        font.setBold(True)
        font.setPointSize(12)
        self.status_label.setFont(font)
        self.start_server_button = QPushButton("Start Server")
        self.start_server_button.clicked.connect(self._on_start_server_clicked)
        top_layout.addWidget(self.status_label)
        top_layout.addWidget(self.start_server_button)
        main_layout.addLayout(top_layout)

        # Client controls
        client_group = QGroupBox("Client Controls")
        client_layout = QVBoxLayout()

        self.scan_button = QPushButton("Scan Local Network")
        self.scan_button.clicked.connect(self._on_scan_clicked)
        client_layout.addWidget(self.scan_button)

        hosts_group = QGroupBox("Found Hosts")
        hosts_layout = QVBoxLayout()
        self.hosts_list = QListWidget()
        self.hosts_list.currentTextChanged.connect(self._on_host_selected)
        hosts_layout.addWidget(self.hosts_list)
        hosts_group.setLayout(hosts_layout)
        client_layout.addWidget(hosts_group)

        download_group = QGroupBox("Download from Host")
        download_layout = QGridLayout()
        self.ip_edit = QLineEdit()
        self.filename_edit = QLineEdit()
        self.download_button = QPushButton("Download File")
        self.download_button.clicked.connect(self._on_download_clicked)
        download_layout.addWidget(QLabel("IP Address:"), 0, 0)
        download_layout.addWidget(self.ip_edit, 0, 1)
        download_layout.addWidget(QLabel("Filename:"), 1, 0)
        download_layout.addWidget(self.filename_edit, 1, 1)
        download_layout.addWidget(self.download_button, 0, 2, 2, 1)
        download_group.setLayout(download_layout)
        client_layout.addWidget(download_group)

        client_group.setLayout(client_layout)
        main_layout.addWidget(client_group)

        # Log area
        self.log_view = QPlainTextEdit()
        self.log_view.setReadOnly(True)
        main_layout.addWidget(self.log_view)

        self.setCentralWidget(central_widget)
        logger.debug("Main window initialized")

    @pyqtSlot(str)
    def _append_log(self, text: str):
        self.log_view.appendPlainText(text)

    @pyqtSlot(object, int)
    def _on_status_changed(self, state: ServerState, port: int):
        if state is ServerState.RUNNING:
            self.status_label.setText(f"Server Status: Running on Port {port}")
        elif state is ServerState.STARTING:
            self.status_label.setText("Server Status: Starting...")
        elif state is ServerState.ERROR:
            self.status_label.setText("Server Status: Error")
        else:
            self.status_label.setText("Server Status: Inactive")

        self.start_server_button.setEnabled(state not in (ServerState.STARTING, ServerState.RUNNING))

    @pyqtSlot(str)
    def _on_host_found(self, host: str):
        self.hosts_list.addItem(host)

    @pyqtSlot(str)
    def _on_host_selected(self, host: str):
        if host:
            self.ip_edit.setText(host)

    def _on_start_server_clicked(self):
        self.node.start_server()

    def _on_scan_clicked(self):
        self.hosts_list.clear()
        self.node.scan_subnet()

    def _on_download_clicked(self):
        self.node.download(self.ip_edit.text(), self.filename_edit.text())

    def closeEvent(self, event):
        """Handle the window close event.

        Args:
            event: The close event
        """
        asyncio.ensure_future(self.node.shutdown())
        event.accept()
