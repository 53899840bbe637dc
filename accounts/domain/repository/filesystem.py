"""File store interface."""

from abc import ABC, abstractmethod


class FileStore(ABC):
    """Storage for per-user asset directories and key artifacts.

    Paths are plain strings. Failures raise ``OSError`` (for example
    ``FileNotFoundError`` when reading a missing file).
    """

    @abstractmethod
    async def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    async def mkdir(self, path: str) -> None:
        """Create a directory and any missing parents."""
        pass

    @abstractmethod
    async def rename(self, source: str, destination: str) -> None:
        """Move a file or directory, creating the destination's parents."""
        pass

    @abstractmethod
    async def read_file(self, path: str) -> str:
        pass

    @abstractmethod
    async def write_file(self, path: str, content: str) -> None:
        """Write a text file, creating parent directories as needed."""
        pass

    @abstractmethod
    async def remove(self, path: str) -> None:
        """Remove a file."""
        pass
