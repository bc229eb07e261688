import sys
from functools import wraps
from cronitor_discover.config import MIN_API_KEY_LENGTH, DiscoverOptions, Settings
from cronitor_discover.config.logging import logger
from cronitor_discover.errors import EXIT_FAILURE, ConfigurationError, DiscoverError


def handle_errors(func):
    """Turn a failed run into a message on stderr and its exit code."""
    @wraps(func)
    def wrapper(options: DiscoverOptions, settings: Settings, *args, **kwargs) -> int:
        try:
            return func(options, settings, *args, **kwargs)
        except DiscoverError as e:
            logger.debug("Error in %s", func.__name__, exc_info=True)
            print(f"Error: {e.message}", file=sys.stderr)
            return e.exit_code
        except Exception as e:
            logger.exception("Error in %s: %s", func.__name__, e)
            return EXIT_FAILURE
    return wrapper


def require_api_key(func):
    """Refuse to run without a plausible API key."""
    @wraps(func)
    def wrapper(options: DiscoverOptions, settings: Settings, *args, **kwargs):
        if len(settings.api_key or "") < MIN_API_KEY_LENGTH:
            logger.warning("Missing or invalid API key")
            raise ConfigurationError(
                "you must provide a valid API key with this command or save it in your configuration file")
        return func(options, settings, *args, **kwargs)
    return wrapper
