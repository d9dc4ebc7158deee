class CodeReportError(Exception):
    """Base class for user-facing failures; the CLI prints the message and exits 1."""


class ConfigError(CodeReportError):
    pass


class ReportsError(CodeReportError):
    pass
