"""Tasks vertical — task, subtask and threaded-comment hierarchy.

- SQLAlchemy models with explicit (non-ORM) cascade
- Repositories with atomic participant membership and graph snapshots
- Progress aggregation refreshed after each subtask write
- Transactional cascade deletion
- View transformer with computed reply trees
- FastAPI router under /api/tasks
"""
