from .thread_file import ThreadFile

__all__ = ["ThreadFile"]
