"""
Request controllers for the Zoints API.

Each controller takes the requester and the request payload, calls into
:mod:`zoints.services`, and returns a ``(data, status_code, headers)``
tuple. Failures are raised as the HTTP exceptions in :mod:`zoints.errors`.
"""
