"""Token bucket algorithm and the keyed throttle built on it.

Import from the submodules (``keythrottle.throttle.limiter``,
``keythrottle.throttle.bucket``); the token table package depends on the
bucket module, so this package stays import-free.
"""
