"""Core domain package for chatrelay.

Core contains read-state reconciliation, suffix resolution and delivery logic
without any gRPC or storage-specific code, keeping the business logic portable.
"""
