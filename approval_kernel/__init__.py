"""
Approval Kernel - HR approval workflow engine.

Drives multi-step approval of manpower requests and business trips:
- Closed status/action state machine per request kind and requester rank
- Hierarchy-based approver routing with shared role queues
- Optimistic concurrency on every mutation
- Append-only approval log and version snapshots
"""

__version__ = "0.1.0"
