"""JSON API for the energy tracker."""

from energy_tracker.web.app import create_app

__all__ = ["create_app"]
