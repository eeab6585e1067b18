import inspect

from fastapi.routing import APIRoute

from compliance.api.main import app


def test_database_routes_run_in_threadpool():
    """Handlers taking a Session are plain functions so FastAPI runs them off the event loop."""
    offenders = [
        route.path
        for route in app.routes
        if isinstance(route, APIRoute)
        and "db" in inspect.signature(route.endpoint).parameters
        and inspect.iscoroutinefunction(route.endpoint)
    ]
    assert offenders == []


def test_upload_routes_are_sync():
    endpoints = {
        (route.path, tuple(sorted(route.methods))): route.endpoint
        for route in app.routes
        if isinstance(route, APIRoute)
    }
    for key in (
        ("/organizations/{org_id}/forms/analyze", ("POST",)),
        ("/organizations/{org_id}/forms/templates", ("POST",)),
        ("/organizations/{org_id}/documents/", ("POST",)),
    ):
        assert not inspect.iscoroutinefunction(endpoints[key])
