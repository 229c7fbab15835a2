"""Command-line interface for ddreduce."""
