from .utcdatetime import UTCDateTime

__all__ = ('UTCDateTime', )
