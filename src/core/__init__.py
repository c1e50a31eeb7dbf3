"""
Core domain layer - the hexagon.

Pure business logic, free of frameworks:
- No Django, Celery or database imports
- Fully testable without a database
- Infrastructure reaches it only through the ports

Packages:
- shared: exceptions, Result values, Unit of Work, domain events
- identity: caller claims and role checks
- ticketing: purchase transaction, inventory, issuing, QR codec
- data_migrations: batched, re-runnable data migrations
"""
