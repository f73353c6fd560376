"""
ASGI entry point for Budgety.

Run with:
    uvicorn app.main:app --host 0.0.0.0 --port 3000

Storage, scheduler and logging are configured from the environment
(see ``budgety.config``). The daily recurring-expense tick runs inside
this process unless SCHEDULER_ENABLED=false, in which case an external
cron should call ``budgety process-recurring`` once a day.
"""

from budgety.api import create_app

app = create_app()
