"""Error taxonomy for Folio builds.

Three kinds of failure are distinguished:
- ConfigurationError: the site configuration is malformed or inconsistent.
  Fatal, the build aborts before anything is written.
- ContentError: a single document is malformed. Recovered, the page is
  skipped and reported while the rest of the site is still built.
- RenderError: the theme or a template failed. Fatal, since every page
  shares the same templates.
"""

from __future__ import annotations

from pathlib import Path


class FolioError(Exception):
    """Base class for all errors raised by Folio."""


class ConfigurationError(FolioError):
    """Malformed or inconsistent site configuration.

    Attributes:
        message: Human-readable error message.
        path: The file or navigation path the error refers to, if any.
    """

    def __init__(self, message: str, path: str | Path | None = None):
        self.message = message
        self.path = path
        super().__init__(f"{path}: {message}" if path is not None else message)


class ContentError(FolioError):
    """A single document could not be loaded or rendered.

    Attributes:
        source_path: Path to the document that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: str | Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


class RenderError(FolioError):
    """Theme or template failure, fatal to the whole build.

    Attributes:
        source_path: Template or document being rendered when the error occurred.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: str | Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")
