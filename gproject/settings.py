# Django settings for the gatehouse project.
########################################################################
# Here's how settings for the Gatehouse project work:
#
# * configured_settings.py imports default_settings.py, which contains
#   default values for settings configurable in /etc/gatehouse/settings.py.
#
# * computed_settings.py contains non-site-specific settings and
#   configuration for the Gatehouse Django app.
#
########################################################################

from .configured_settings import *  # noqa: F403 isort: skip
from .computed_settings import *  # noqa: F403 isort: skip

# Do not add any code after these wildcard imports!  Add it to
# computed_settings instead.
