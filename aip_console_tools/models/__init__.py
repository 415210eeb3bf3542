"""Data models for AIP Console Tools."""

from .application_models import *
from .command_models import *
from .delivery_models import *
from .job_models import *
from .response_models import *
