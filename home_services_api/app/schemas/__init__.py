"""
Pydantic schema definitions for API payloads.

Each domain (users, skills, services, bookings, reports) defines its own
request and response models.  Schemas are kept apart from the sqlite rows
so the HTTP representation can evolve independently of the tables.
"""
