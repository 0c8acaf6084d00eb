from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class VaultToCsvError(Exception):
    """Base exception for errors in the vault_to_csv module."""

    message: str = "Vault export failed."

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class VaultNotFoundError(VaultToCsvError):
    """Raised when the vault root does not exist or is not a directory."""

    folder: Path = Path()
    message: str = "The specified vault folder does not exist."


@dataclass(frozen=True)
class VaultReadError(VaultToCsvError):
    """Raised when a folder cannot be listed or a file cannot be read."""

    path: Path = Path()
    message: str = "The specified path could not be read."


@dataclass(frozen=True)
class InvalidOptionsError(VaultToCsvError):
    """Raised when an export options file or a command-line value is invalid."""

    path: Path = Path()
    message: str = "The export options file is invalid."


@dataclass(frozen=True)
class ExportFormatError(VaultToCsvError):
    """Raised when a CSV export does not have the expected columns."""

    message: str = "The CSV export does not have the expected columns."


@dataclass(frozen=True)
class ExportWriteError(VaultToCsvError):
    """Raised when an output file cannot be written."""

    path: Path = Path()
    message: str = "The output file could not be written."
