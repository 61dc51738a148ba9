from __future__ import annotations

from pathlib import Path


class HgBatchConvertError(Exception):
    """Base class for everything this package raises on purpose."""


class FatalError(HgBatchConvertError):
    """Aborts the whole run; no repository can be converted safely."""


class ConfigurationError(FatalError):
    pass


class DirectoryAccessError(HgBatchConvertError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"cannot read directory {path}: {reason}")
        self.path = path
        self.reason = reason


class ConversionFailure(HgBatchConvertError):
    """A single repository could not be converted. The walk carries on."""

    step = "convert"

    def __init__(self, repo: Path, reason: str) -> None:
        super().__init__(f"{self.step} failed for {repo}: {reason}")
        self.repo = repo
        self.reason = reason


class MappingError(ConversionFailure):
    step = "author mapping"


class MappingTimeoutError(MappingError):
    pass


class MappingIOError(MappingError):
    pass


class RepositoryResetError(ConversionFailure):
    step = "reset"


class RepositoryInitError(ConversionFailure):
    step = "init"


class ConversionError(ConversionFailure):
    step = "fast-export"


class FinalizeError(ConversionFailure):
    step = "checkout"
