"""Exceptions raised by the routing and elevation clients."""


class TourRouterError(Exception):
    """Base class for tour-router errors."""


class RoutingError(TourRouterError):
    """The routing service could not produce a route.

    `kind` is one of "timeout", "no_route" or "http".
    """

    def __init__(self, kind: str, message: str = ""):
        super().__init__(message or kind)
        self.kind = kind


class ElevationQueryError(TourRouterError):
    """The elevation service failed for a whole batch."""
