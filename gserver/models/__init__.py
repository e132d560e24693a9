from gserver.models.projects import Project as Project
from gserver.models.server_settings import ServerSettings as ServerSettings
from gserver.models.server_settings import get_server_settings as get_server_settings
from gserver.models.users import ExternalAuthID as ExternalAuthID
from gserver.models.users import UserProfile as UserProfile
