# This file makes the routers directory a Python package
from . import (
    auth,
    content,
    downloads,
    health,
    lecturers,
)
