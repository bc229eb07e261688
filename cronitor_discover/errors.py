# === EXIT CODES ===
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NO_INPUT = 66
EXIT_PERMISSION_DENIED = 126


class DiscoverError(Exception):
    """Base error for a failed discover run."""
    exit_code = EXIT_FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CrontabNotFoundError(DiscoverError):
    exit_code = EXIT_NO_INPUT


class CrontabPermissionError(DiscoverError):
    exit_code = EXIT_PERMISSION_DENIED


class ConfigurationError(DiscoverError):
    pass


class RegistryError(DiscoverError):
    pass
