from __future__ import annotations

import os
import sys

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt5.QtCore import QCoreApplication  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def qt_app() -> QCoreApplication:
    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    yield app
