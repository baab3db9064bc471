"""
*LIVEOIL*

Tabulated live and dead oil PVT properties, with analytic derivatives, for batches of grid cells.
"""

from ._precision import *  # noqa
from .constants import *  # noqa
from .config import *  # noqa
from .errors import *  # noqa
from .types import *  # noqa
from .tolerance import *  # noqa
from .tables import *  # noqa
from .pvt import *  # noqa
from .factories import *  # noqa
from .serialization import dump, load  # noqa
