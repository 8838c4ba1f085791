"""Exceptions for the regtree package."""

from typing import Optional


class RegistryError(Exception):
    """Base exception for all registry errors."""

    def __init__(
        self,
        message: str,
        key_path: Optional[str] = None,
        value_name: Optional[str] = None,
    ):
        self.key_path = key_path
        self.value_name = value_name
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError subclasses would otherwise repr() the message
        return self.args[0] if self.args else ""


class StoreError(RegistryError):
    """The storage backend failed in a way not covered by a narrower error."""

    pass


class InvalidPathError(RegistryError, ValueError):
    """Path is empty, malformed, or does not start with a known hive."""

    def __init__(self, key_path: str, reason: str = "Invalid registry path"):
        super().__init__(f"{reason}: {key_path!r}", key_path=key_path)


class InvalidValueNameError(RegistryError, ValueError):
    """Value name contains a reserved character."""

    def __init__(self, value_name: str):
        super().__init__(
            f"Value name contains invalid characters: {value_name!r}",
            value_name=value_name,
        )


class KeyNotFoundError(RegistryError, KeyError):
    """No key at the specified path."""

    def __init__(self, key_path: str):
        super().__init__(f"Registry key not found: {key_path}", key_path=key_path)


class ValueNotFoundError(RegistryError, KeyError):
    """Key exists but holds no value with the given name."""

    def __init__(self, key_path: str, value_name: str):
        super().__init__(
            f"Value '{value_name}' not found in key: {key_path}",
            key_path=key_path,
            value_name=value_name,
        )


class AccessDeniedError(RegistryError, PermissionError):
    """The store refused access to a key."""

    def __init__(self, key_path: str):
        super().__init__(f"Access denied to registry key: {key_path}", key_path=key_path)


class TypeMismatchError(RegistryError, TypeError):
    """Value does not fit the requested type."""

    pass


class SerializationError(RegistryError):
    """Snapshot text is malformed or missing required fields."""

    pass
