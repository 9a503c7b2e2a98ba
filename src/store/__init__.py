"""Version store backends.

This module holds the generation-addressed blob contract and its
S3 and local filesystem implementations used by the archiver.
"""
