class StructogramError(Exception):
    """Base class for all errors raised by the structogram core."""


class MalformedConstructError(StructogramError, ValueError):
    """A construct could not be assembled from its parts."""


class UnsupportedLanguageError(StructogramError, ValueError):
    def __init__(self, language, supported):
        self.language = language
        self.supported = list(supported)
        super().__init__(
            f"Unsupported language: {language}. Supported: {', '.join(self.supported)}"
        )


class UnknownKeywordSetError(StructogramError, ValueError):
    def __init__(self, name, supported):
        self.name = name
        self.supported = list(supported)
        super().__init__(f"Unknown keyword set: {name}. Supported: {', '.join(self.supported)}")


class InvalidRequestError(StructogramError):
    """A request to the HTTP API lacks a field or carries an unusable value."""
