"""Interior Design Generator: FastAPI REST API layer.

Modules
-------
main
    FastAPI application factory, route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API responses and gallery records.
prompt_builder
    Composition of the inference prompt from the user's text.
gallery_store
    MongoDB and JSON-file gallery repositories.
orchestrator
    Step-by-step sequencing of one generation request.
"""
