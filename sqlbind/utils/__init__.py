from sqlbind.utils import logging, serializers, type_guards

__all__ = ("logging", "serializers", "type_guards")
