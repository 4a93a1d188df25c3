"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import connection  # noqa: F401
from . import member  # noqa: F401
from . import project  # noqa: F401
from . import registry  # noqa: F401
from . import user  # noqa: F401
