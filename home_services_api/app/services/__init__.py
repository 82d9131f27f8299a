"""
Service layer.

Each service class owns the business rules of one domain (users,
skills, catalogue, bookings, notifications, statistics, reports) and
talks to SQLite through ``core.db``.  Route handlers stay thin and only
translate ``ServiceError`` into HTTP responses.
"""
