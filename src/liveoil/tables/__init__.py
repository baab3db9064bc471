from .store import *  # noqa
from .dead_oil import *  # noqa
from .viscosity import *  # noqa
