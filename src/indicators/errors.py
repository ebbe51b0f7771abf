from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    MALFORMED_PAYLOAD = "malformed_payload"
    NO_VALID_OBSERVATION = "no_valid_observation"
    NO_OVERLAP_PERIOD = "no_overlap_period"
    ALL_SOURCES_EXHAUSTED = "all_sources_exhausted"
    UNKNOWN_METRIC = "unknown_metric"
    INTERNAL = "internal"


class ResolutionError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL


class ConfigurationError(ResolutionError):
    kind = ErrorKind.CONFIGURATION


class TransportError(ResolutionError):
    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedPayloadError(ResolutionError):
    kind = ErrorKind.MALFORMED_PAYLOAD


class NoValidObservationError(ResolutionError):
    kind = ErrorKind.NO_VALID_OBSERVATION


class NoOverlapPeriodError(ResolutionError):
    kind = ErrorKind.NO_OVERLAP_PERIOD


def error_kind_of(error: BaseException) -> ErrorKind:
    if isinstance(error, ResolutionError):
        return error.kind
    return ErrorKind.INTERNAL
