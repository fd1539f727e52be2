"""Incremental structural metadata index for PHP codebases."""
