"""Core domain package for newsflash.

Core contains candidate selection, queue draining and message shaping without
any Telegram or storage-specific code, keeping the delivery logic portable.
"""
