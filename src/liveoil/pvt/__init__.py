from .base import *  # noqa
from .live_oil import *  # noqa
from .dead_oil import *  # noqa
