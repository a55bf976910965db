"""
Kernel layer

Foundational components every route goes through:
- Identity (session tokens, agent keys, principal resolution)
- Authorization gate (project scoping, per-operation decisions)
- Append-only activity log and its cursor-paginated read path

Invariants:
- Every accepted work-item mutation appends activity in the same transaction
- Activity rows are immutable once written
- Out-of-scope resources are indistinguishable from absent ones
"""
