"""
lumber_batch -- Map/reduce batch runs over lots and yield entries.

Provides a batch executor with per-item SAVEPOINT isolation and the
periodic lumber jobs: tally reconciliation and yield anomaly detection.

Architecture:
    lumber_batch/ is a top-level package.  Nothing in kernel/, engines/,
    config/, modules/ or services/ imports from lumber_batch.

Invariants:
    - SAVEPOINT isolation per item: one failing item never aborts the run.
    - Map is side-effect free on shared counters; every aggregate is
      produced in the reduce phase from emitted key/value pairs.
    - Timestamps come from the injected Clock.
"""
