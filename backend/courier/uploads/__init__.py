"""Image attachment storage for chat messages.

Images are stored on local disk and served back at /uploads/{name}.
Supported types: jpeg, png, gif, webp.
"""
