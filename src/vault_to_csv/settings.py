from __future__ import annotations

import os
from enum import StrEnum, auto
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from vault_to_csv.config import DEFAULT_EXCLUDE_TERMS, DEFAULT_EXTENSIONS
from vault_to_csv.exceptions import InvalidOptionsError

ENV_FILE = find_dotenv(usecwd=True)
if ENV_FILE:
    load_dotenv(ENV_FILE)

VAULT_ENV_VAR = "VAULT_TO_CSV_VAULT"


def describe_validation_error(error: ValidationError) -> str:
    """Summarize a validation error on one line, as `field: message` pairs."""
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'value'}: {err['msg']}" for err in error.errors()
    )


def default_vault() -> Path:
    """Vault root from the environment, falling back to the working directory."""
    env_value = os.environ.get(VAULT_ENV_VAR, "")
    return Path(env_value) if env_value else Path.cwd()


class ReadErrorPolicy(StrEnum):
    """What to do when a folder or a file of the vault cannot be read."""

    ABORT = auto()
    SKIP = auto()


class ExportOptions(BaseModel):
    """Segmentation policy applied to every file of the vault.

    The aliases are the keys the vault plugin stores in its ``data.json``, so a
    plugin settings file can be used as an options file unchanged.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    treat_consecutive_lines_as_block: bool = Field(
        default=False,
        alias="markdownBlocks",
        description="Export consecutive non-blank lines as one block.",
    )
    treat_tables_as_block: bool = Field(
        default=True,
        alias="markdownTables",
        description="Export all lines of a markdown table as one block.",
    )
    treat_code_as_block: bool = Field(
        default=True,
        alias="codeBlocks",
        description="Export a fenced code block as one block.",
    )
    export_blank_lines: bool = Field(
        default=True,
        alias="exportBlankLines",
        description="Export blank lines as their own blocks.",
    )


def load_export_options(path: Path) -> ExportOptions:
    """Load export options from a YAML (or JSON) mapping, over the defaults.

    Args:
        path (Path): the options file to read

    Raises:
        InvalidOptionsError: if the file cannot be read, is not a mapping, or
            holds unknown keys or non-boolean values

    Returns:
        ExportOptions: the defaults updated with the values found in the file
    """
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise InvalidOptionsError(path=path, message=f"Cannot load options from {path}: {e}") from e
    if not isinstance(data, dict):
        raise InvalidOptionsError(path=path, message=f"Options file {path} must hold a mapping.")
    try:
        return ExportOptions.model_validate(data)
    except ValidationError as e:
        raise InvalidOptionsError(
            path=path,
            message=f"Invalid options in {path}: {describe_validation_error(e)}",
        ) from e


class Settings(BaseModel):
    """Configuration settings for the vault_to_csv export command."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    vault: Path = Field(default_factory=default_vault, description="Vault root folder.")
    output: Path | None = Field(default=None, description="Output CSV file.")
    output_dir: Path = Field(
        default_factory=Path.cwd,
        description="Folder for the timestamped CSV when no output is given.",
    )
    options_file: Path | None = Field(default=None, description="YAML/JSON export options.")
    log_file: str = Field(default="", description="Log file path.")
    verbose: bool = Field(default=False, description="Log debug events.")

    markdown_blocks: bool | None = Field(
        default=None,
        description="Override: treat consecutive lines as a block.",
    )
    markdown_tables: bool | None = Field(
        default=None,
        description="Override: treat tables as a block.",
    )
    code_blocks: bool | None = Field(
        default=None,
        description="Override: treat fenced code as a block.",
    )
    blank_lines: bool | None = Field(
        default=None,
        description="Override: export blank lines.",
    )

    extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXTENSIONS),
        description="File extensions to export.",
    )
    exclude_terms: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_TERMS),
        description="Basename substrings of files to skip.",
    )
    include_hidden: bool = Field(default=False, description="Walk dot-folders and dot-files.")
    on_read_error: ReadErrorPolicy = Field(
        default=ReadErrorPolicy.ABORT,
        description="Abort the export or skip unreadable entries.",
    )
    delimiter: str = Field(default=",", description="CSV field delimiter.")

    @field_validator("delimiter")
    @classmethod
    def _single_character(cls, value: str) -> str:
        if len(value) != 1 or value in {'"', "\n", "\r"}:
            msg = "delimiter must be a single character other than a quote or a newline"
            raise ValueError(msg)
        return value

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        return [ext.strip().lstrip(".").lower() for ext in value if ext.strip()]

    def export_options(self) -> ExportOptions:
        """Resolve the segmentation policy: defaults, then options file, then flags.

        Returns:
            ExportOptions: the policy to hand to the segmenter
        """
        base = load_export_options(self.options_file) if self.options_file else ExportOptions()
        overrides = {
            "treat_consecutive_lines_as_block": self.markdown_blocks,
            "treat_tables_as_block": self.markdown_tables,
            "treat_code_as_block": self.code_blocks,
            "export_blank_lines": self.blank_lines,
        }
        return base.model_copy(update={k: v for k, v in overrides.items() if v is not None})
