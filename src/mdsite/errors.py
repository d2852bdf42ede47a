"""Build error taxonomy; every error is fatal and names its source path(s)"""


class BuildError(Exception):
    """Base class for all errors that abort a site build."""


class ConfigError(BuildError, ValueError):
    """Invalid configuration or unsafe source/output directory pairing."""


class ParseError(BuildError):
    """A document header could not be parsed."""

    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class MissingFieldError(ParseError):
    """A required header field is absent."""

    def __init__(self, path, field: str):
        self.field = field
        super().__init__(path, f"missing required header field '{field}'")


class RouteConflict(BuildError):
    """Two sources resolve to the same output path."""

    def __init__(self, output_path: str, first: str, second: str):
        self.output_path = output_path
        self.sources = (first, second)
        super().__init__(f"{first} and {second} both resolve to '{output_path}'")


class IncludeNotFound(BuildError):
    def __init__(self, name: str, source: str):
        self.name = name
        self.source = source
        super().__init__(f"{source}: include '{name}' not found")


class IncludeCycleError(BuildError):
    def __init__(self, chain: list[str], source: str):
        self.chain = list(chain)
        self.source = source
        super().__init__(f"{source}: include cycle {' -> '.join(self.chain)}")


class LayoutNotFound(BuildError):
    def __init__(self, name: str, source: str):
        self.name = name
        self.source = source
        super().__init__(f"{source}: layout '{name}' not found")


class LayoutCycleError(BuildError):
    def __init__(self, chain: list[str], source: str):
        self.chain = list(chain)
        self.source = source
        super().__init__(f"{source}: layout cycle {' -> '.join(self.chain)}")
