from pathlib import Path
import dotenv
import logging


ROOT = Path(__file__).parent.parent

dotenv.load_dotenv(ROOT / '.env')

# Logging configuration
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given name"""
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    return logger


# Index defaults
DEFAULT_INDEX = 'storyblok_stories'
DEFAULT_ENTITY = 'story'
DEFAULT_FIELD_LIMIT = 1000
DEFAULT_PER_PAGE = 100
DEFAULT_API_VERSION = 8

# Storyblok content delivery API
DEFAULT_STORYBLOK_API_URL = 'https://api.storyblok.com/v2/'
DEFAULT_RESOLVE_LINKS = 'url'
