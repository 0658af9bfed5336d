"""Error types raised by paket."""


class PaketError(Exception):
    """Base error for all paket failures."""


class InvalidArguments(PaketError):
    """Raised when a run is started without modes, globs or a version spec."""


class RegistryError(PaketError):
    """Raised when the registry cannot be reached or answers with an error."""

    def __init__(self, name: str, message: str, status_code: int | None = None):
        self.name = name
        self.status_code = status_code
        super().__init__(f"Registry lookup for '{name}' failed: {message}")


class ToolInvocationError(PaketError):
    """Raised when the package manager binary exits non-zero."""

    def __init__(self, command: list[str], return_code: int, stderr: str = ""):
        self.command = command
        self.return_code = return_code
        self.stderr = stderr
        message = f"Command '{' '.join(command)}' failed with code {return_code}"
        if stderr:
            message += f":\n{stderr.strip()}"
        super().__init__(message)


class MalformedResponseError(PaketError):
    """Raised when version metadata lacks the fields a VersionRecord needs."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Malformed metadata for '{name}': {reason}")


class ManifestParseError(PaketError):
    """Raised when a discovered manifest is not a valid package.json."""

    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"Cannot parse {path}: {reason}")


class WriteError(PaketError):
    """Raised when an updated manifest cannot be written back."""

    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"Cannot write {path}: {reason}")
