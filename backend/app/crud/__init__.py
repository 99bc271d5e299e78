from . import crud_calendar
from . import crud_publication
