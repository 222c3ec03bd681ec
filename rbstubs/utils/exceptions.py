from typing import Optional


class RbStubsException(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return f"{self.__class__.__name__}: {self.message}"


class StubError(RbStubsException):
    pass


class StubSyntaxError(StubError):
    def __init__(self, message: str, filename: str = "<stub>", line: Optional[int] = None):
        super().__init__(message)
        self.filename = filename
        self.line = line

    def __str__(self):
        if self.line is None:
            return f"{self.__class__.__name__}: {self.filename}: {self.message}"
        return f"{self.__class__.__name__}: {self.filename}:{self.line}: {self.message}"


class SignatureError(StubError):
    pass


class VersionParseError(RbStubsException):
    pass


class LoaderError(RbStubsException):
    pass


class StubsNotFoundError(LoaderError):
    pass


class IndexLookupError(RbStubsException):
    pass


class CLIError(RbStubsException):
    pass


class ValidationError(CLIError):
    pass
