"""Exception hierarchy for the log parser."""


class LogParserError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(LogParserError):
    pass


class CompileError(LogParserError):
    """A pattern, pattern file, or key glob could not be compiled."""


class NoParserConfiguredError(LogParserError):
    def __init__(self, message: str = "no parsers defined"):
        super().__init__(message)


class ParseError(LogParserError):
    """A line did not match the parser's grammar."""


class TailReadError(LogParserError):
    pass


class PluginStateError(LogParserError):
    pass


class FileOpenError(LogParserError):
    """One or more resolved files could not be tailed.

    ``failures`` maps each path to its error, ``opened`` lists the paths that
    were tailed successfully and keep running.
    """

    def __init__(self, failures: dict[str, Exception], opened: list[str] | None = None):
        self.failures = dict(failures)
        self.opened = list(opened or [])
        super().__init__(" ".join(str(e) for e in self.failures.values()))
