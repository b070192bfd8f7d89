import os
from dotenv import load_dotenv

# Load environment variables from the .env file
load_dotenv()

DAY_NAMES = {
    'sun': 0, 'sunday': 0,
    'mon': 1, 'monday': 1,
    'tue': 2, 'tuesday': 2,
    'wed': 3, 'wednesday': 3,
    'thu': 4, 'thursday': 4,
    'fri': 5, 'friday': 5,
    'sat': 6, 'saturday': 6,
}


def parse_working_days(value):
    """
    Parses a working-day setting such as "1,2,3,4,5" or "mon,tue,wed".

    Args:
        value: Comma separated day numbers (0 - Sunday) or day names

    Returns:
        List of day numbers. Unknown entries are kept as -1 so that the
        calendar validation can report them.
    """
    days = []
    for part in value.split(','):
        part = part.strip().lower()
        if not part:
            continue
        if part.lstrip('-').isdigit():
            days.append(int(part))
        else:
            days.append(DAY_NAMES.get(part, -1))
    return days


# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "planner.log")

# Database settings
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///planner.db")

# Project calendar defaults
WORKING_DAYS = parse_working_days(os.getenv("WORKING_DAYS", "1,2,3,4,5"))
HOURS_PER_DAY = float(os.getenv("HOURS_PER_DAY", "8"))
DEFAULT_DURATION = int(os.getenv("DEFAULT_DURATION", "1"))

# Scheduling engine
MAX_PROPAGATION_PASSES = int(os.getenv("MAX_PROPAGATION_PASSES", "10"))
CRITICAL_FLOAT_EPSILON = float(os.getenv("CRITICAL_FLOAT_EPSILON", "0.001"))
