"""Business logic services.

Service-layer functions implement the upload, content and social rules.
Route handlers and Celery tasks call them; they own commits and raise
ApiError subclasses for the route layer to render.
"""
