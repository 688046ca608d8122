"""
Application Layer

Contains use cases, query handlers, and application services.
This layer orchestrates domain objects and infrastructure to fulfill use cases.

Structure:
- queries/: CQRS read operations (GetCollectionQuery, GetSessionStateQuery)
- services/: Collection store, lock registry, session state and client sync
- interfaces/: Port interfaces for infrastructure adapters
"""
