"""
Syntora — Gamification Engine for a Personal Productivity CRM
==============================================================
Turns task completions into points, combos, XP and levels, closes out each
calendar day with a streak-aware daily reset, and projects a fixed
achievement catalog over the user's tasks.  Exposed over a small FastAPI
surface that the client-rendered dashboard talks to.

Package layout::

    syntora/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Point table + leveling formula
    ├── scheduler.py       # APScheduler daily-reset job (python -m syntora.scheduler)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (stats, history, tasks, achievements)
    ├── engine/
    │   ├── events.py      # TaskCompletionEvent + base points
    │   ├── accrual.py     # Points / combo / XP / level calculation
    │   ├── reset.py       # Daily reset planning + streak rules
    │   ├── achievements.py # Achievement catalog + pure evaluator
    │   └── analytics.py   # Weekly / monthly history buckets
    ├── services/
    │   ├── gamification_service.py # Stats persistence, completions, daily reset
    │   ├── task_service.py         # Task records
    │   ├── analytics_service.py    # Analytics read model
    │   ├── notifications.py        # XP / level-up / achievement fan-out
    │   └── errors.py               # Domain exceptions
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine, config, service, bearer-token auth
        └── routes/        # Gaming, analytics, achievements, tasks
"""

__version__ = "0.1.0"
