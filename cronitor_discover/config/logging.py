import logging

logging.basicConfig(
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    level=logging.WARNING
)

logger = logging.getLogger("cronitor_discover")

class ApiKeyFilter(logging.Filter):
    def __init__(self, api_key: str):
        super().__init__()
        self.api_key = api_key

    def filter(self, record):
        if not self.api_key:
            return True
        msg = record.getMessage()
        if self.api_key in msg:
            record.msg = msg.replace(self.api_key, "*" * 8)
            record.args = ()
        return True

def set_verbosity(verbose: bool) -> None:
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

def install_api_key_filter(api_key: str):
    key_filter = ApiKeyFilter(api_key)
    loggers = [logging.getLogger()] + [
        obj for obj in logging.root.manager.loggerDict.values() if isinstance(obj, logging.Logger)
    ]
    for logger_obj in loggers:
        # Replace the filter from a previous run in the same process
        for old in [f for f in logger_obj.filters if isinstance(f, ApiKeyFilter)]:
            logger_obj.removeFilter(old)
        logger_obj.addFilter(key_filter)
    return key_filter
