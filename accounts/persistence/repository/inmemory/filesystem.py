"""In-memory file store for testing."""

from pathlib import PurePosixPath

from accounts.domain.repository import FileStore


def _normalize(path: str) -> str:
    return str(PurePosixPath(path))


class InMemoryFileStore(FileStore):
    """In-memory implementation of FileStore for testing."""

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.directories: set[str] = set()

    def _add_parents(self, path: str) -> None:
        for parent in PurePosixPath(path).parents:
            if str(parent) not in (".", "/"):
                self.directories.add(str(parent))

    async def exists(self, path: str) -> bool:
        path = _normalize(path)
        return path in self.files or path in self.directories

    async def mkdir(self, path: str) -> None:
        path = _normalize(path)
        if path in self.files:
            raise FileExistsError(path)
        self._add_parents(path)
        self.directories.add(path)

    async def rename(self, source: str, destination: str) -> None:
        source, destination = _normalize(source), _normalize(destination)
        if source in self.files:
            self._add_parents(destination)
            self.files[destination] = self.files.pop(source)
            return
        if source not in self.directories:
            raise FileNotFoundError(source)
        if await self.exists(destination):
            raise FileExistsError(destination)

        prefix = source + "/"
        self._add_parents(destination)
        for directory in sorted(self.directories):
            if directory == source or directory.startswith(prefix):
                self.directories.discard(directory)
                self.directories.add(destination + directory[len(source) :])
        for file_path in list(self.files):
            if file_path.startswith(prefix):
                self.files[destination + file_path[len(source) :]] = self.files.pop(file_path)

    async def read_file(self, path: str) -> str:
        path = _normalize(path)
        if path not in self.files:
            raise FileNotFoundError(path)
        return self.files[path]

    async def write_file(self, path: str, content: str) -> None:
        path = _normalize(path)
        if path in self.directories:
            raise IsADirectoryError(path)
        self._add_parents(path)
        self.files[path] = content

    async def remove(self, path: str) -> None:
        path = _normalize(path)
        if path not in self.files:
            raise FileNotFoundError(path)
        del self.files[path]
