from fastapi import Request, HTTPException


def get_reader_service(request: Request):
    """Dependency to get the ReaderService instance."""
    service = getattr(request.app.state, "reader_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Reader service is not available.")
    return service


def get_settings_store_factory(request: Request):
    """Dependency returning a callable that builds a SettingsStore for a user id."""
    factory = getattr(request.app.state, "settings_store_factory", None)
    if factory is None:
        raise HTTPException(status_code=503, detail="Settings storage is not available.")
    return factory
