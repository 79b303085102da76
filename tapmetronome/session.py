from PyQt5.QtCore import QMetaObject, QObject, QThread, Qt, pyqtSignal

from .controller import MetronomeController
from .engine import MetronomeEngine
from .logging_utils import log_event, set_log_level
from .settings import MetronomeSettings


class MetronomeSession(QObject):
    """Owns an engine and a controller and keeps them bound for one UI session.

    With ``threaded=True`` the engine runs on its own QThread; engine signals
    then reach the controller as queued events on the caller's thread.
    """
    sig_init_engine = pyqtSignal()

    def __init__(self, settings: MetronomeSettings | None = None, threaded: bool = True, parent=None):
        super().__init__(parent)
        self.settings = settings or MetronomeSettings()
        set_log_level(self.settings.log_level)

        self.worker_thread = None
        self.engine = MetronomeEngine(self.settings.to_configuration())
        if threaded:
            self.worker_thread = QThread()
            self.worker_thread.start()
            self.engine.moveToThread(self.worker_thread)
        self.sig_init_engine.connect(self.engine.initialize)

        self.controller = MetronomeController(self.settings, parent=self)

    def start(self):
        self.sig_init_engine.emit()
        self.controller.bind(self.engine)
        log_event("info", "Session", "Started", threaded=self.worker_thread is not None)

    def close(self) -> MetronomeSettings:
        """Unbind, stop the worker and hand back the settings worth persisting."""
        snapshot = self.controller.snapshot_settings()
        if self.worker_thread is not None:
            # runs after any queued start, and before the thread goes away
            QMetaObject.invokeMethod(self.engine, "stop", Qt.BlockingQueuedConnection)
        else:
            self.engine.stop()
        self.controller.close()
        if self.worker_thread is not None:
            self.worker_thread.quit()
            self.worker_thread.wait()
            self.worker_thread = None
        log_event("info", "Session", "Closed")
        return snapshot
