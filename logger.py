import logging
import sys

from config import LOG_LEVEL, LOG_FILE

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(LOG_FILE, encoding='utf-8')
    ]
)

# Scheduling warnings (calendar fallbacks, dangling dependencies,
# non-converged propagation) go to the same log
logging.captureWarnings(True)

# Create logger
logger = logging.getLogger(__name__)

# Set logging level for the database library
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
