"""
Shared test fixtures for the stagedi test suite.
"""

import pytest

from stagedi import Container
from stagedi.diagnostics import DIDiagnostics, RecordingDiagnosticListener


# ============================================================================
# Containers
# ============================================================================


@pytest.fixture
def recorder():
    """Listener capturing every diagnostic event."""
    return RecordingDiagnosticListener()


@pytest.fixture
def container(recorder):
    """A fresh container with a recording diagnostics listener."""
    diagnostics = DIDiagnostics()
    diagnostics.add_listener(recorder)
    return Container(diagnostics=diagnostics)

