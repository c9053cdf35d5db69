"""tam-data-hub — market-data aggregation core.

A priority-ordered provider fallback chain (Alpha Vantage, FRED, World
Bank, IMF, BLS, Census) over a tiered cache (in-process with disk
persistence, Redis, or a hybrid of both).  Build a ready service with
:func:`tamdata.main.async_session`.
"""

__version__ = "0.1.0"
