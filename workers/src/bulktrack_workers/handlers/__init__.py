# Import all handlers so they register themselves.
from . import set_events  # noqa: F401
from . import backfill  # noqa: F401
