"""
Shared Kernel

Building blocks used by every app: DDD base classes and value objects
(``shared.domain``), unit of work, message bus and keyed locks
(``shared.application``) and the API error envelope (``shared.api``).
"""
