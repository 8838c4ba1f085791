"""Shared fixtures for regtree tests."""

import pytest

from regtree import Registry, MemoryBackend, SQLiteBackend, ValueType

VENDOR = r"HKCU\Software\Vendor"


@pytest.fixture(params=["memory", "sqlite"])
def backend(request):
    """A connected backend; tests using it run once per backend."""
    if request.param == "memory":
        backend = MemoryBackend()
        backend.connect()
    else:
        backend = SQLiteBackend()
        backend.connect(path=":memory:")
    yield backend
    backend.close()


@pytest.fixture
def registry(backend):
    """A Registry over each backend in turn."""
    return Registry(backend)


@pytest.fixture
def memory_registry():
    """A Registry over a fresh in-memory backend."""
    backend = MemoryBackend()
    backend.connect()
    yield Registry(backend)
    backend.close()


def populate(reg: Registry) -> str:
    """Create a small vendor tree and return its root path.

    HKCU\\Software\\Vendor            Name (String), Version (DWord)
        App1                        InstallPath (String), Install-Log (ExpandString)
            Settings                Theme (String), Retries (DWord)
        App2                        Flags (Binary), Tags (MultiString), Big (QWord)
    """
    reg.create_key_strict(VENDOR + r"\App1\Settings")
    reg.create_key_strict(VENDOR + r"\App2")

    reg.write_value_strict(VENDOR, "Name", "Vendor Inc")
    reg.write_value_strict(VENDOR, "Version", 3, ValueType.DWORD)

    reg.write_value_strict(VENDOR + r"\App1", "InstallPath", r"C:\Program Files\App1")
    reg.write_value_strict(
        VENDOR + r"\App1", "Install-Log", r"%TEMP%\app1.log", ValueType.EXPAND_STRING
    )
    reg.write_value_strict(VENDOR + r"\App1\Settings", "Theme", "dark")
    reg.write_value_strict(VENDOR + r"\App1\Settings", "Retries", 5, ValueType.DWORD)

    reg.write_value_strict(VENDOR + r"\App2", "Flags", b"\x01\x02\xff", ValueType.BINARY)
    reg.write_value_strict(VENDOR + r"\App2", "Tags", ["a", "b"], ValueType.MULTI_STRING)
    reg.write_value_strict(VENDOR + r"\App2", "Big", 2**40, ValueType.QWORD)
    return VENDOR


@pytest.fixture
def vendor(registry):
    """Each-backend Registry holding the vendor tree."""
    populate(registry)
    return registry


@pytest.fixture
def memory_vendor(memory_registry):
    """In-memory Registry holding the vendor tree (supports deny_access)."""
    populate(memory_registry)
    return memory_registry
