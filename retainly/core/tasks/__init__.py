"""
Periodic work for Retainly.

## Celery Tasks

Celery's `autodiscover_tasks()` looks for `tasks.py` (or `tasks/__init__.py`)
in each Django app. The sweep tasks live in `scheduled_tasks.py` and are
imported here so they get registered.

## Task Registry

The task registry (`registry.py`) is the single source of truth for all
scheduled task definitions:

```python
from retainly.core.tasks.registry import SCHEDULED_TASKS, get_enabled_tasks
```
"""

# =============================================================================
# CELERY TASK IMPORTS
# =============================================================================
from retainly.core.tasks import scheduled_tasks  # noqa: F401

# =============================================================================
# PUBLIC API
# =============================================================================
from retainly.core.tasks.registry import SCHEDULED_TASKS
from retainly.core.tasks.registry import ScheduledTaskDefinition
from retainly.core.tasks.registry import get_enabled_tasks
from retainly.core.tasks.registry import get_task_by_id

__all__ = [
    "SCHEDULED_TASKS",
    "ScheduledTaskDefinition",
    "get_enabled_tasks",
    "get_task_by_id",
]
