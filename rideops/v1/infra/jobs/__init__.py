"""
Scheduled job infrastructure.

This package runs the recurring maintenance tasks of the service:
- Registry-based pluggable tasks (retention sweep, capture drain, retry)
- One bounded, single pass per invocation, on a fixed interval or on demand
- Every run recorded in the job_runs table with its result or error
"""
