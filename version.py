"""Project version constants.

These constants are used in logs, the botocore user agent and report footers
so that a printed report can be traced back to a specific engine version.
"""

ENGINE_NAME: str = "ri-reconciler"
ENGINE_VERSION: str = "0.1.0"
