"""Archive versioning core.

This module packages directories, publishes them as store generations,
and materializes generations locally behind an atomic current pointer.
"""
