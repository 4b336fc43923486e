"""Claims test runner.

Builds claim submissions from declarative test cases, submits them one at a
time with a fixed pacing delay, and records pass/fail outcomes that can be
refreshed later against the claims API.

Run the API server:
    uvicorn claimrunner.app:app --host 0.0.0.0 --port 8080
"""

__version__ = "0.1.0"
