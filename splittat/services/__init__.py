"""
Service layer - Business logic orchestration.

Services coordinate repositories and the allocation engine; they raise domain
exceptions and never touch HTTP concerns.
"""
