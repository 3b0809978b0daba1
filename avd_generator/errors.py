"""Exceptions raised by the generators."""


class GeneratorError(Exception):
    """Base class for every error raised by avd_generator."""


class ConfigError(GeneratorError):
    """generator.yaml (or an env override) could not be used."""


class SourceListingError(GeneratorError):
    """A whole source directory could not be listed. Aborts that pass."""

    def __init__(self, directory, reason):
        self.directory = directory
        super().__init__(f"unable to list {directory}: {reason}")


class RecordParseError(GeneratorError):
    """One input file could not be parsed. The file is skipped."""

    def __init__(self, path, reason):
        self.path = path
        super().__init__(f"unable to parse {path}: {reason}")


class RenderError(GeneratorError):
    """Template and record did not fit together. The record is skipped."""


# What a well-formed JSON/YAML document with a wrongly shaped field raises
# while its fields are being pulled out.
MALFORMED_RECORD = (ValueError, KeyError, IndexError, TypeError, AttributeError)
