########################################################################
# DEFAULT VALUES FOR SETTINGS
########################################################################

import os

# For any settings that are not set in the site-specific configuration
# file (/etc/gatehouse/settings.py in production), we want to
# initialize them to sane defaults.
from .default_settings import *  # noqa: F403 isort: skip

from .config import PRODUCTION

TEST_SUITE = os.getenv("GATEHOUSE_TEST_SUITE") == "true"

if PRODUCTION:  # nocoverage
    # gproject/prod_settings.py is a symlink to /etc/gatehouse/settings.py.
    from .prod_settings import *  # noqa: F403 isort: skip
