"""
billcycle - recurring-obligation lifecycle and forecasting engine.

Package layout:
- models: Pydantic models for templates, transactions, categories and the
  transient results produced by the services.
- services.recurring: detection, scheduling, price tracking, forecasting and
  cancellation scoring.
- utils: date arithmetic, serialization helpers, tag extraction, record store
  adapters and performance tracking.

All monetary amounts are Decimal. All datetimes are timezone-aware UTC and
are persisted as epoch milliseconds.
"""

__version__ = "0.1.0"
