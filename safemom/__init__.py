"""
SafeMom client core.

Pregnancy safety checks for photographed products, driven by a
four-step wizard over a same-origin JSON API.

Structure:
- domain/: Request, analysis and wizard models
- infrastructure/: HTTP orchestrator, API client, local storage
- application/: Wizard controller
- api/: Diagnostics routes (FastAPI)
- tests/: Test suite (unit, integration)
"""

__version__ = "1.0.0"
